"""
Sensor input for volmap_ingest.

Adapters: pointcloud_adapters (PointCloud2, Ouster PointCloud2, Livox CustomMsg).
ROS: tf_pose_source, ros_debug_sinks, pointcloud_input_node.

ROS-dependent node classes are not imported here so that the adapters can be
imported without a ROS environment. Use submodules directly, e.g.:
  from volmap_ingest.frontend.sensors.pointcloud_input_node import PointcloudInputNode
"""

__all__ = []
