"""
In-memory transform buffer implementing the PoseSource contract.

Keeps a time-sorted history of T_parent_child samples per frame pair with
bounded retention, and interpolates between neighbouring samples (linear
translation, SLERP rotation). Used for offline replay and in tests; the ROS
node uses tf2 through TfPoseSource instead.

Writers (odometry/TF callbacks) and the dispatcher may run on different
threads; all access goes through one lock.
"""

from __future__ import annotations

import bisect
import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from volmap_ingest.backend.pose_resolver import PoseLookup
from volmap_ingest.common import constants
from volmap_ingest.common.geometry.se3_numpy import se3_identity, se3_interpolate, se3_inverse
from volmap_ingest.common.time_utils import sec_to_ns

FramePair = Tuple[str, str]


class _PairHistory:
    __slots__ = ("stamps", "poses")

    def __init__(self) -> None:
        self.stamps: List[int] = []
        self.poses: List[np.ndarray] = []


class PoseBuffer:
    """Time-indexed pose history with tf2-like lookup semantics."""

    def __init__(self, cache_duration: float = constants.POSE_CACHE_DURATION_DEFAULT) -> None:
        if cache_duration <= 0.0:
            raise ValueError(f"cache_duration must be > 0, got {cache_duration}")
        self.cache_duration_ns = sec_to_ns(cache_duration)
        self._histories: Dict[FramePair, _PairHistory] = {}
        self._lock = threading.Lock()

    def add_pose(self, parent_frame: str, child_frame: str, stamp_ns: int, pose: np.ndarray) -> None:
        """Insert T_parent_child at stamp_ns (replaces an existing sample at the same stamp)."""
        pose = np.asarray(pose, dtype=float).reshape(6)
        stamp_ns = int(stamp_ns)
        with self._lock:
            hist = self._histories.setdefault((parent_frame, child_frame), _PairHistory())
            idx = bisect.bisect_left(hist.stamps, stamp_ns)
            if idx < len(hist.stamps) and hist.stamps[idx] == stamp_ns:
                hist.poses[idx] = pose
            else:
                hist.stamps.insert(idx, stamp_ns)
                hist.poses.insert(idx, pose)
            self._evict(hist)

    def _evict(self, hist: _PairHistory) -> None:
        cutoff = hist.stamps[-1] - self.cache_duration_ns
        n_old = bisect.bisect_left(hist.stamps, cutoff)
        if n_old > 0:
            del hist.stamps[:n_old]
            del hist.poses[:n_old]

    def clear(self) -> None:
        with self._lock:
            self._histories.clear()

    def _find(self, world_frame: str, sensor_frame: str) -> Tuple[Optional[_PairHistory], bool]:
        """History for the pair, and whether it is stored inverted (sensor -> world)."""
        hist = self._histories.get((world_frame, sensor_frame))
        if hist is not None and hist.stamps:
            return hist, False
        hist = self._histories.get((sensor_frame, world_frame))
        if hist is not None and hist.stamps:
            return hist, True
        return None, False

    def lookup(self, world_frame: str, sensor_frame: str, stamp_ns: int) -> PoseLookup:
        if world_frame == sensor_frame:
            return PoseLookup.available(se3_identity())
        stamp_ns = int(stamp_ns)
        with self._lock:
            hist, inverted = self._find(world_frame, sensor_frame)
            if hist is None:
                return PoseLookup.not_yet(
                    f"no transform between '{world_frame}' and '{sensor_frame}' buffered yet"
                )
            oldest, newest = hist.stamps[0], hist.stamps[-1]
            if stamp_ns > newest:
                return PoseLookup.not_yet(
                    f"requested time {stamp_ns} is newer than the latest buffered pose {newest}"
                )
            if stamp_ns < oldest:
                return PoseLookup.no_longer(
                    f"requested time {stamp_ns} is older than the oldest buffered pose {oldest}"
                )
            idx = bisect.bisect_left(hist.stamps, stamp_ns)
            if hist.stamps[idx] == stamp_ns:
                pose = hist.poses[idx]
            else:
                # Relative to the left sample so float64 keeps ns resolution.
                t0 = hist.stamps[idx - 1]
                pose = se3_interpolate(
                    [0.0, float(hist.stamps[idx] - t0)],
                    np.stack([hist.poses[idx - 1], hist.poses[idx]]),
                    [float(stamp_ns - t0)],
                )[0]
        if inverted:
            pose = se3_inverse(pose)
        return PoseLookup.available(pose)

    def newest_timestamp(self, world_frame: Optional[str] = None, sensor_frame: Optional[str] = None) -> Optional[int]:
        """Newest buffered stamp for the pair, or across all pairs when no pair is given."""
        with self._lock:
            if world_frame is not None and sensor_frame is not None:
                hist, _ = self._find(world_frame, sensor_frame)
                return hist.stamps[-1] if hist is not None else None
            newest = [h.stamps[-1] for h in self._histories.values() if h.stamps]
            return max(newest) if newest else None

    def oldest_timestamp(self, world_frame: str, sensor_frame: str) -> Optional[int]:
        with self._lock:
            hist, _ = self._find(world_frame, sensor_frame)
            return hist.stamps[0] if hist is not None else None
