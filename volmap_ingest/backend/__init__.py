"""
Backend package for volmap_ingest.

No ROS imports: stamped point cloud structures, the ingestion queue, pose
resolution, motion undistortion, and the integration dispatcher. Message
decoding goes through frontend.sensors.pointcloud_adapters, which is ROS-free
as well (messages are duck-typed), so the backend runs without a ROS
environment.
"""

__all__ = []
