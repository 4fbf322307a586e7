"""
ROS debug sinks: republish integrated clouds (PointCloud2) and range images (Image).

Listener-gated through get_subscription_count(); publishing with nobody
subscribed is skipped by DebugPublisher.
"""

from __future__ import annotations

import numpy as np
from rclpy.node import Node
from rclpy.qos import QoSProfile, ReliabilityPolicy, HistoryPolicy, DurabilityPolicy
from sensor_msgs.msg import Image, PointCloud2, PointField

from volmap_ingest.backend.debug_publisher import DebugSink
from volmap_ingest.backend.structures.stamped_pointcloud import PosedPointcloud, PosedRangeImage
from volmap_ingest.common import constants
from volmap_ingest.common.time_utils import ns_to_stamp_fields


def _debug_qos() -> QoSProfile:
    return QoSProfile(
        reliability=ReliabilityPolicy.RELIABLE,
        durability=DurabilityPolicy.VOLATILE,
        history=HistoryPolicy.KEEP_LAST,
        depth=constants.QOS_DEPTH_DEBUG_OUTPUT,
    )


def _fill_header(msg, stamp_ns: int, frame_id: str) -> None:
    sec, nanosec = ns_to_stamp_fields(stamp_ns)
    msg.header.stamp.sec = sec
    msg.header.stamp.nanosec = nanosec
    msg.header.frame_id = frame_id


def xyz_to_pointcloud2(points: np.ndarray, stamp_ns: int, frame_id: str) -> PointCloud2:
    """Pack (N, 3) points as a dense float32 x/y/z PointCloud2."""
    pts = np.ascontiguousarray(np.asarray(points, dtype=np.float32).reshape(-1, 3))
    msg = PointCloud2()
    _fill_header(msg, stamp_ns, frame_id)
    msg.height = 1
    msg.width = int(pts.shape[0])
    msg.fields = [
        PointField(name="x", offset=0, datatype=PointField.FLOAT32, count=1),
        PointField(name="y", offset=4, datatype=PointField.FLOAT32, count=1),
        PointField(name="z", offset=8, datatype=PointField.FLOAT32, count=1),
    ]
    msg.is_bigendian = False
    msg.point_step = 12
    msg.row_step = msg.point_step * msg.width
    msg.is_dense = bool(np.all(np.isfinite(pts)))
    msg.data = pts.tobytes()
    return msg


class RosPointcloudSink(DebugSink):
    """Reprojected (world-frame) cloud on a PointCloud2 topic."""

    def __init__(self, node: Node, topic: str, world_frame: str) -> None:
        self.world_frame = world_frame
        self.pub = node.create_publisher(PointCloud2, topic, _debug_qos())

    def has_subscribers(self) -> bool:
        return self.pub.get_subscription_count() > 0

    def publish(self, stamp_ns: int, payload: PosedPointcloud, frame_id: str = "") -> None:
        self.pub.publish(xyz_to_pointcloud2(payload.points_in_world(), stamp_ns, self.world_frame))


class RosRangeImageSink(DebugSink):
    """Projected range image as a 32FC1 Image in the sensor frame."""

    def __init__(self, node: Node, topic: str) -> None:
        self.pub = node.create_publisher(Image, topic, _debug_qos())

    def has_subscribers(self) -> bool:
        return self.pub.get_subscription_count() > 0

    def publish(self, stamp_ns: int, payload: PosedRangeImage, frame_id: str = "") -> None:
        ranges = np.ascontiguousarray(np.asarray(payload.ranges, dtype=np.float32))
        msg = Image()
        _fill_header(msg, stamp_ns, frame_id)
        msg.height, msg.width = int(ranges.shape[0]), int(ranges.shape[1])
        msg.encoding = "32FC1"
        msg.is_bigendian = 0
        msg.step = msg.width * 4
        msg.data = ranges.tobytes()
        self.pub.publish(msg)
