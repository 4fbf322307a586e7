"""
Time conversions between ROS stamps, seconds and integer nanoseconds.

Pipeline stamps are ints (ns) so that cloud boundaries compare exactly.
"""

from __future__ import annotations

from volmap_ingest.common.constants import NS_PER_SEC


def sec_to_ns(seconds: float) -> int:
    """Round a duration in seconds to integer nanoseconds."""
    return int(round(float(seconds) * NS_PER_SEC))


def ns_to_sec(nanoseconds: int) -> float:
    return float(nanoseconds) / NS_PER_SEC


def stamp_to_ns(stamp) -> int:
    """builtin_interfaces/Time (sec, nanosec) -> ns."""
    return int(stamp.sec) * NS_PER_SEC + int(stamp.nanosec)


def ns_to_stamp_fields(nanoseconds: int) -> tuple[int, int]:
    """ns -> (sec, nanosec) suitable for builtin_interfaces/Time."""
    sec, nanosec = divmod(int(nanoseconds), NS_PER_SEC)
    return int(sec), int(nanosec)
