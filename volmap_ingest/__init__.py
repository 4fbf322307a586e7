"""
volmap_ingest: point cloud ingestion and map-integration dispatch.

Raw LiDAR messages → GenericStampedPointcloud → PointcloudQueue → pose lookup /
motion undistortion → PosedPointcloud → registered map integrators (in order).

ROS-dependent modules live under frontend/sensors and are never imported here.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "GenericStampedPointcloud",
    "PosedPointcloud",
    "PointcloudQueue",
    "PoseBuffer",
    "PoseResolver",
    "PointcloudUndistorter",
    "PointcloudInputHandler",
    "IntegratorBase",
    "DebugPublisher",
]

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    "GenericStampedPointcloud": ("volmap_ingest.backend.structures.stamped_pointcloud", "GenericStampedPointcloud"),
    "PosedPointcloud": ("volmap_ingest.backend.structures.stamped_pointcloud", "PosedPointcloud"),
    "PointcloudQueue": ("volmap_ingest.backend.structures.pointcloud_queue", "PointcloudQueue"),
    "PoseBuffer": ("volmap_ingest.backend.structures.pose_buffer", "PoseBuffer"),
    "PoseResolver": ("volmap_ingest.backend.pose_resolver", "PoseResolver"),
    "PointcloudUndistorter": ("volmap_ingest.backend.operators.undistortion", "PointcloudUndistorter"),
    "PointcloudInputHandler": ("volmap_ingest.backend.input_handler", "PointcloudInputHandler"),
    "IntegratorBase": ("volmap_ingest.backend.integrators", "IntegratorBase"),
    "DebugPublisher": ("volmap_ingest.backend.debug_publisher", "DebugPublisher"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
