"""
Motion undistortion for stamped point clouds.

Given per-point capture times, looks up the sensor trajectory over
[start_time, end_time], moves every point to the world frame with the pose at
its own capture time, and re-expresses all points in the sensor frame at the
cloud's median time:

  p_ref = T_W_C(t_ref)^{-1} ⊙ T_W_C(t_i) ⊙ p_i

The output is a PosedPointcloud with the single pose T_W_C(t_ref).

Lookup order: end time, start time, then interior samples. The outcome tells
the dispatcher whether waiting can help (END_TIME_NOT_IN_TF_BUFFER only).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

import numpy as np

from volmap_ingest.backend.pose_resolver import LookupStatus, PoseResolver
from volmap_ingest.backend.structures.stamped_pointcloud import GenericStampedPointcloud, PosedPointcloud
from volmap_ingest.common import constants
from volmap_ingest.common.geometry.se3_numpy import (
    se3_apply,
    se3_apply_batch,
    se3_interpolate,
    se3_inverse,
)

_logger = logging.getLogger(__name__)


class UndistortionResult(Enum):
    SUCCESS = "success"
    START_TIME_NOT_IN_TF_BUFFER = "start_time_not_in_tf_buffer"
    END_TIME_NOT_IN_TF_BUFFER = "end_time_not_in_tf_buffer"
    INTERMEDIATE_TIME_NOT_IN_TF_BUFFER = "intermediate_time_not_in_tf_buffer"


@dataclass
class UndistortionOutcome:
    result: UndistortionResult
    posed_pointcloud: Optional[PosedPointcloud] = None

    @property
    def ok(self) -> bool:
        return self.result is UndistortionResult.SUCCESS


def interpolation_stamps(start_ns: int, end_ns: int, num_intervals: int) -> np.ndarray:
    """Strictly increasing int64 sample stamps spanning [start_ns, end_ns] (both included)."""
    if end_ns <= start_ns:
        return np.array([start_ns], dtype=np.int64)
    num_intervals = max(1, min(int(num_intervals), int(end_ns - start_ns)))
    stamps = np.linspace(start_ns, end_ns, num_intervals + 1)
    stamps = np.unique(np.round(stamps).astype(np.int64))
    stamps[0], stamps[-1] = start_ns, end_ns
    return stamps


class PointcloudUndistorter:
    """Compensates sensor motion during capture using poses from a PoseResolver."""

    def __init__(
        self,
        resolver: PoseResolver,
        num_interpolation_intervals: int = constants.UNDISTORTION_INTERVALS_PER_CLOUD_DEFAULT,
    ) -> None:
        if num_interpolation_intervals < 1:
            raise ValueError(f"num_interpolation_intervals must be >= 1, got {num_interpolation_intervals}")
        self.resolver = resolver
        self.num_interpolation_intervals = int(num_interpolation_intervals)

    def undistort(self, cloud: GenericStampedPointcloud) -> UndistortionOutcome:
        frame = cloud.sensor_frame
        start_ns, end_ns = cloud.start_time, cloud.end_time

        end_lookup = self.resolver.lookup(frame, end_ns)
        if not end_lookup.ok:
            if end_lookup.status is LookupStatus.NO_LONGER_AVAILABLE:
                # The whole interval fell out of the buffer.
                return UndistortionOutcome(UndistortionResult.START_TIME_NOT_IN_TF_BUFFER)
            return UndistortionOutcome(UndistortionResult.END_TIME_NOT_IN_TF_BUFFER)

        start_lookup = self.resolver.lookup(frame, start_ns)
        if not start_lookup.ok:
            return UndistortionOutcome(UndistortionResult.START_TIME_NOT_IN_TF_BUFFER)

        stamps = interpolation_stamps(start_ns, end_ns, self.num_interpolation_intervals)
        poses = np.zeros((stamps.shape[0], 6), dtype=float)
        poses[0] = start_lookup.pose
        poses[-1] = end_lookup.pose
        if stamps.shape[0] > 2:
            interior, failed, failed_idx = self.resolver.lookup_many(frame, stamps[1:-1])
            if interior is None:
                _logger.debug(
                    "Interior pose lookup failed at %d (%s)", int(stamps[1 + failed_idx]), failed.detail
                )
                return UndistortionOutcome(UndistortionResult.INTERMEDIATE_TIME_NOT_IN_TF_BUFFER)
            poses[1:-1] = interior

        return UndistortionOutcome(
            UndistortionResult.SUCCESS,
            self._compensate(cloud, stamps, poses),
        )

    def _compensate(
        self,
        cloud: GenericStampedPointcloud,
        stamps: np.ndarray,
        poses: np.ndarray,
    ) -> PosedPointcloud:
        # Work relative to the start time so float64 keeps ns resolution.
        t0 = int(stamps[0])
        rel_stamps = (stamps - t0).astype(float)
        ref_time = float(cloud.median_time - t0)

        T_W_ref = se3_interpolate(rel_stamps, poses, [ref_time])[0]
        if len(cloud) == 0:
            return PosedPointcloud(pose=T_W_ref)

        point_times = cloud.time_offsets.astype(float) + float(cloud.timebase - t0)
        T_W_points = se3_interpolate(rel_stamps, poses, point_times)
        points_W = se3_apply_batch(T_W_points, cloud.positions)
        points_ref = se3_apply(se3_inverse(T_W_ref), points_W)
        return PosedPointcloud(pose=T_W_ref, points=points_ref.astype(np.float32))
