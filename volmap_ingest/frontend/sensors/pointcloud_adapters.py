"""
Raw point cloud message adapters - NO MATH.

One adapter per declared topic type, selected once from configuration:
- PointCloud2Adapter: sensor_msgs/PointCloud2, per-point offsets are zero
- OusterPointCloud2Adapter: sensor_msgs/PointCloud2 with per-point `t` (ns)
- LivoxCustomMsgAdapter: livox_ros_driver2/msg/CustomMsg (timebase + offset_time)

Messages are duck-typed (only the attributes used below are read), so the
adapters import and run without a ROS environment.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import numpy as np

from volmap_ingest.common import constants
from volmap_ingest.common.time_utils import stamp_to_ns


def _pointfield_to_dtype(datatype: int, bigendian: bool = False) -> np.dtype:
    """Map sensor_msgs/PointField datatype to numpy dtype."""
    order = ">" if bigendian else "<"
    codes = {
        constants.POINTFIELD_INT8: "i1",
        constants.POINTFIELD_UINT8: "u1",
        constants.POINTFIELD_INT16: "i2",
        constants.POINTFIELD_UINT16: "u2",
        constants.POINTFIELD_INT32: "i4",
        constants.POINTFIELD_UINT32: "u4",
        constants.POINTFIELD_FLOAT32: "f4",
        constants.POINTFIELD_FLOAT64: "f8",
    }
    code = codes.get(int(datatype))
    if code is None:
        raise ValueError(f"Unsupported PointField datatype: {datatype}")
    return np.dtype(order + code)


def validate_xyz_field_order(fields) -> Optional[str]:
    """
    Require fields x, y, z to be present and consecutive in that order.

    Returns a rejection reason, or None if the layout is acceptable.
    """
    names = [f.name for f in fields]
    if "x" not in names:
        return "missing field x"
    x_idx = names.index("x")
    if x_idx + 1 >= len(names) or names[x_idx + 1] != "y":
        return "missing or out-of-order field y"
    if x_idx + 2 >= len(names) or names[x_idx + 2] != "z":
        return "missing or out-of-order field z"
    return None


def pointcloud2_fields_to_arrays(msg, names: Tuple[str, ...]) -> dict[str, np.ndarray]:
    """
    Decode the named PointCloud2 fields into flat (N,) arrays.

    Honors point_step, row_step padding and is_bigendian.
    """
    field_map = {f.name: f for f in msg.fields}
    missing = [n for n in names if n not in field_map]
    if missing:
        raise ValueError(f"PointCloud2 missing fields {missing}")

    height, width = int(msg.height), int(msg.width)
    point_step, row_step = int(msg.point_step), int(msg.row_step)
    bigendian = bool(getattr(msg, "is_bigendian", False))
    dtype = np.dtype(
        {
            "names": list(names),
            "formats": [_pointfield_to_dtype(field_map[n].datatype, bigendian) for n in names],
            "offsets": [int(field_map[n].offset) for n in names],
            "itemsize": point_step,
        }
    )

    raw = np.frombuffer(bytes(msg.data), dtype=np.uint8)
    expected = height * row_step
    if raw.size < expected or row_step < width * point_step:
        raise ValueError(
            f"PointCloud2 data too short: {raw.size} bytes for {height}x{width} "
            f"(point_step={point_step}, row_step={row_step})"
        )
    rows = raw[:expected].reshape(height, row_step)[:, : width * point_step]
    arr = np.ascontiguousarray(rows).reshape(-1).view(dtype)
    return {n: np.asarray(arr[n]) for n in names}


class PointcloudMessageAdapter(ABC):
    """Maps one raw message type onto (timebase, frame, points[x, y, z, offset])."""

    topic_type: str = ""

    @abstractmethod
    def num_points(self, msg: Any) -> int:
        ...

    def validate(self, msg: Any) -> Optional[str]:
        """Rejection reason, or None to accept."""
        return None

    @abstractmethod
    def extract_timebase_ns(self, msg: Any) -> int:
        ...

    def extract_frame_id(self, msg: Any) -> str:
        return str(msg.header.frame_id)

    @abstractmethod
    def extract_points(self, msg: Any) -> Tuple[np.ndarray, np.ndarray]:
        """(positions (N, 3) float32, time offsets (N,) int64 ns)."""
        ...


class PointCloud2Adapter(PointcloudMessageAdapter):
    """Dense structured-field clouds; carries no sub-cloud timing unless time_field is set."""

    topic_type = constants.TOPIC_TYPE_POINTCLOUD2

    def __init__(self, time_field: Optional[str] = None) -> None:
        self.time_field = time_field

    def num_points(self, msg: Any) -> int:
        return int(msg.height) * int(msg.width)

    def validate(self, msg: Any) -> Optional[str]:
        reason = validate_xyz_field_order(msg.fields)
        if reason is not None:
            return reason
        if self.time_field and self.time_field not in {f.name for f in msg.fields}:
            return f"missing per-point time field {self.time_field}"
        return None

    def extract_timebase_ns(self, msg: Any) -> int:
        return stamp_to_ns(msg.header.stamp)

    def extract_points(self, msg: Any) -> Tuple[np.ndarray, np.ndarray]:
        names = ("x", "y", "z") + ((self.time_field,) if self.time_field else ())
        cols = pointcloud2_fields_to_arrays(msg, names)
        positions = np.stack([cols["x"], cols["y"], cols["z"]], axis=1).astype(np.float32)
        if self.time_field:
            offsets = cols[self.time_field].astype(np.int64)
        else:
            offsets = np.zeros((positions.shape[0],), dtype=np.int64)
        return positions, offsets


class OusterPointCloud2Adapter(PointCloud2Adapter):
    """Ouster driver clouds: PointCloud2 with per-point `t` offsets in ns."""

    topic_type = constants.TOPIC_TYPE_OUSTER

    def __init__(self) -> None:
        super().__init__(time_field=constants.OUSTER_TIME_FIELD)


class LivoxCustomMsgAdapter(PointcloudMessageAdapter):
    """livox_ros_driver2 CustomMsg: timebase (ns) + CustomPoint.offset_time (ns)."""

    topic_type = constants.TOPIC_TYPE_LIVOX

    def num_points(self, msg: Any) -> int:
        return len(msg.points)

    def extract_timebase_ns(self, msg: Any) -> int:
        return int(msg.timebase)

    def extract_points(self, msg: Any) -> Tuple[np.ndarray, np.ndarray]:
        points = msg.points
        positions = np.array([(p.x, p.y, p.z) for p in points], dtype=np.float32).reshape(-1, 3)
        offsets = np.array([int(p.offset_time) for p in points], dtype=np.int64)
        return positions, offsets


_ADAPTERS = {
    constants.TOPIC_TYPE_POINTCLOUD2: PointCloud2Adapter,
    constants.TOPIC_TYPE_OUSTER: OusterPointCloud2Adapter,
    constants.TOPIC_TYPE_LIVOX: LivoxCustomMsgAdapter,
}


def make_message_adapter(topic_type: str) -> PointcloudMessageAdapter:
    adapter_cls = _ADAPTERS.get(topic_type)
    if adapter_cls is None:
        raise ValueError(f"Unsupported topic_type: {topic_type!r} (expected one of {constants.TOPIC_TYPES})")
    return adapter_cls()
