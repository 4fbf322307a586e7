"""
Point cloud containers passed between ingestion, pose lookup and integration.

GenericStampedPointcloud: transport-independent cloud (timebase + per-point
time offsets), built by a producer and consumed exactly once by the dispatcher.

PosedPointcloud: sensor-frame points bound to one pose T_W_C, handed to every
registered integrator.

PosedRangeImage: range image exported by projective integrators (debug only).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from volmap_ingest.common.geometry.se3_numpy import se3_apply


class GenericStampedPointcloud:
    """
    Stamped point cloud with a fixed number of points, filled incrementally.

    Times are integer nanoseconds. Point offsets are relative to `timebase`
    and assumed non-decreasing (not enforced).
    """

    __slots__ = ("_timebase", "_sensor_frame", "_positions", "_offsets", "_size")

    def __init__(self, timebase: int, sensor_frame: str, num_points: int) -> None:
        if num_points < 0:
            raise ValueError(f"num_points must be >= 0, got {num_points}")
        self._timebase = int(timebase)
        self._sensor_frame = str(sensor_frame)
        self._positions = np.zeros((int(num_points), 3), dtype=np.float32)
        self._offsets = np.zeros((int(num_points),), dtype=np.int64)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return (
            f"GenericStampedPointcloud(timebase={self._timebase}, sensor_frame={self._sensor_frame!r}, "
            f"points={self._size}/{self.capacity})"
        )

    @property
    def timebase(self) -> int:
        return self._timebase

    @property
    def sensor_frame(self) -> str:
        return self._sensor_frame

    @property
    def capacity(self) -> int:
        return int(self._positions.shape[0])

    @property
    def is_full(self) -> bool:
        return self._size == self.capacity

    @property
    def positions(self) -> np.ndarray:
        """(N, 3) float32 positions in the sensor frame (filled prefix, read-only view)."""
        view = self._positions[: self._size]
        view.flags.writeable = False
        return view

    @property
    def time_offsets(self) -> np.ndarray:
        """(N,) int64 per-point offsets from timebase (ns)."""
        view = self._offsets[: self._size]
        view.flags.writeable = False
        return view

    def emplace(self, x: float, y: float, z: float, time_offset: int) -> None:
        """Append one point."""
        if self._size >= self.capacity:
            raise ValueError(f"pointcloud is full ({self.capacity} points)")
        self._positions[self._size] = (x, y, z)
        self._offsets[self._size] = int(time_offset)
        self._size += 1

    def extend(self, positions: np.ndarray, time_offsets: np.ndarray) -> None:
        """Append a block of points: positions (M, 3), time_offsets (M,)."""
        positions = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
        time_offsets = np.asarray(time_offsets, dtype=np.int64).reshape(-1)
        m = positions.shape[0]
        if time_offsets.shape[0] != m:
            raise ValueError(f"positions/time_offsets length mismatch: {m} vs {time_offsets.shape[0]}")
        if self._size + m > self.capacity:
            raise ValueError(
                f"cannot add {m} points to pointcloud holding {self._size}/{self.capacity}"
            )
        self._positions[self._size : self._size + m] = positions
        self._offsets[self._size : self._size + m] = time_offsets
        self._size += m

    @property
    def start_time(self) -> int:
        return self._timebase

    @property
    def end_time(self) -> int:
        if self._size == 0:
            return self._timebase
        return self._timebase + int(self._offsets[: self._size].max())

    @property
    def median_time(self) -> int:
        """Midpoint of [start_time, end_time]; used as the reference time for debug output."""
        start = self.start_time
        return start + (self.end_time - start) // 2

    @property
    def duration_ns(self) -> int:
        return self.end_time - self.start_time

    @property
    def point_stamps(self) -> np.ndarray:
        """(N,) absolute per-point stamps (ns)."""
        return self._timebase + self._offsets[: self._size]


@dataclass
class PosedPointcloud:
    """Sensor-frame points bound to a single pose T_W_C = [x, y, z, rx, ry, rz]."""

    pose: np.ndarray
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))

    def __post_init__(self) -> None:
        self.pose = np.asarray(self.pose, dtype=float).reshape(6)
        self.points = np.asarray(self.points, dtype=np.float32).reshape(-1, 3)

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def size(self) -> int:
        return len(self)

    def points_in_world(self) -> np.ndarray:
        """(N, 3) points mapped through the pose into the world frame."""
        return se3_apply(self.pose, self.points).astype(np.float32)


@dataclass
class PosedRangeImage:
    """Range image (rows x cols, meters) captured from `pose`."""

    pose: np.ndarray
    ranges: np.ndarray

    def __post_init__(self) -> None:
        self.pose = np.asarray(self.pose, dtype=float).reshape(6)
        self.ranges = np.asarray(self.ranges, dtype=np.float32)
        if self.ranges.ndim != 2:
            raise ValueError(f"range image must be 2-D, got shape {self.ranges.shape}")

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.ranges.shape[0]), int(self.ranges.shape[1])
