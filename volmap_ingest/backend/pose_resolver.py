"""
Pose lookup contract between the pipeline and a transform buffer.

A pose source answers "T_W_C at time t?" with one of three outcomes:
- AVAILABLE: pose returned
- NOT_YET_AVAILABLE: t is newer than the buffered data (or the frame has not
  been seen yet); waiting may help
- NO_LONGER_AVAILABLE: t is older than the retained history; waiting cannot help

The dispatcher keys its wait/give-up policy on this distinction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence, Tuple

import numpy as np


class LookupStatus(Enum):
    AVAILABLE = "available"
    NOT_YET_AVAILABLE = "not_yet_available"
    NO_LONGER_AVAILABLE = "no_longer_available"


@dataclass(frozen=True)
class PoseLookup:
    status: LookupStatus
    pose: Optional[np.ndarray] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.AVAILABLE

    @classmethod
    def available(cls, pose: np.ndarray) -> "PoseLookup":
        return cls(LookupStatus.AVAILABLE, np.asarray(pose, dtype=float).reshape(6))

    @classmethod
    def not_yet(cls, detail: str = "") -> "PoseLookup":
        return cls(LookupStatus.NOT_YET_AVAILABLE, None, detail)

    @classmethod
    def no_longer(cls, detail: str = "") -> "PoseLookup":
        return cls(LookupStatus.NO_LONGER_AVAILABLE, None, detail)


class PoseSource(Protocol):
    """Transform buffer contract (tf2 buffer, in-memory PoseBuffer, ...)."""

    def lookup(self, world_frame: str, sensor_frame: str, stamp_ns: int) -> PoseLookup:
        ...

    def newest_timestamp(self, world_frame: str, sensor_frame: str) -> Optional[int]:
        ...


class PoseResolver:
    """Pose lookups for one world frame."""

    def __init__(self, source: PoseSource, world_frame: str) -> None:
        if not world_frame:
            raise ValueError("PoseResolver: world_frame must be set")
        self.source = source
        self.world_frame = world_frame

    def lookup(self, sensor_frame: str, stamp_ns: int) -> PoseLookup:
        return self.source.lookup(self.world_frame, sensor_frame, int(stamp_ns))

    def lookup_many(
        self, sensor_frame: str, stamps_ns: Sequence[int]
    ) -> Tuple[Optional[np.ndarray], Optional[PoseLookup], int]:
        """
        Look up poses at several stamps; stops at the first failure.

        Returns:
            (poses (K, 6), None, -1) on success, else (None, failed_lookup, failed_index).
        """
        poses = np.zeros((len(stamps_ns), 6), dtype=float)
        for i, stamp in enumerate(stamps_ns):
            result = self.lookup(sensor_frame, int(stamp))
            if not result.ok:
                return None, result, i
            poses[i] = result.pose
        return poses, None, -1

    def newest_timestamp(self, sensor_frame: str) -> Optional[int]:
        return self.source.newest_timestamp(self.world_frame, sensor_frame)
