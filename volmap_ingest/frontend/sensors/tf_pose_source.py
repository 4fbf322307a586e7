"""
tf2 pose source: PoseSource backed by a tf2_ros.Buffer + TransformListener.

Lookups are non-blocking; the dispatcher retries instead of waiting inside tf2.
tf2 exceptions are classified so that the dispatcher can tell "not yet"
(extrapolation into the future, frame not seen yet) from "no longer"
(extrapolation into the past, i.e. evicted from the cache).
"""

from __future__ import annotations

from typing import Optional

from rclpy.duration import Duration
from rclpy.node import Node
from rclpy.time import Time
from tf2_ros import (
    Buffer,
    ConnectivityException,
    ExtrapolationException,
    LookupException,
    TransformException,
    TransformListener,
)

from volmap_ingest.backend.pose_resolver import PoseLookup
from volmap_ingest.common import constants
from volmap_ingest.common.geometry.se3_numpy import se3_from_quat_trans, se3_identity
from volmap_ingest.common.time_utils import stamp_to_ns


def _is_past_extrapolation(e: ExtrapolationException) -> bool:
    return "into the past" in str(e)


class TfPoseSource:
    """T_W_C lookups from the node's tf tree."""

    def __init__(self, node: Node, cache_duration: float = constants.POSE_CACHE_DURATION_DEFAULT) -> None:
        self.node = node
        self.tf_buffer = Buffer(cache_time=Duration(seconds=float(cache_duration)))
        self.tf_listener = TransformListener(self.tf_buffer, node, spin_thread=False)

    def lookup(self, world_frame: str, sensor_frame: str, stamp_ns: int) -> PoseLookup:
        if world_frame == sensor_frame:
            return PoseLookup.available(se3_identity())
        query_time = Time(nanoseconds=int(stamp_ns))
        try:
            t = self.tf_buffer.lookup_transform(world_frame, sensor_frame, query_time)
        except ExtrapolationException as e:
            if _is_past_extrapolation(e):
                return PoseLookup.no_longer(str(e))
            return PoseLookup.not_yet(str(e))
        except (LookupException, ConnectivityException) as e:
            return PoseLookup.not_yet(str(e))
        except TransformException as e:
            self.node.get_logger().warn(
                f"TF lookup failed ({world_frame} <- {sensor_frame}): {type(e).__name__}: {e}",
                throttle_duration_sec=5.0,
            )
            return PoseLookup.not_yet(str(e))

        trans = t.transform.translation
        rot = t.transform.rotation
        pose = se3_from_quat_trans(rot.x, rot.y, rot.z, rot.w, [trans.x, trans.y, trans.z])
        return PoseLookup.available(pose)

    def newest_timestamp(self, world_frame: str, sensor_frame: str) -> Optional[int]:
        """Latest common stamp of the world <- sensor chain, or None if not connected yet."""
        if world_frame == sensor_frame:
            return None
        try:
            t = self.tf_buffer.lookup_transform(world_frame, sensor_frame, Time())
        except TransformException:
            return None
        return stamp_to_ns(t.header.stamp)
