"""
Common package for volmap_ingest.

Shared constants, parameter models, timing and SE(3) helpers used by both
frontend (ROS plumbing) and backend (queue, pose lookup, dispatch).

Subpackages:
- geometry/: SE(3) operations on [x, y, z, rx, ry, rz] poses
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "WallTimer",
    "constants",
]

_LAZY_ATTRS: dict[str, tuple[str, str | None]] = {
    "WallTimer": ("volmap_ingest.common.timing", "WallTimer"),
    # Expose as a submodule, but do not eagerly import it at package import time.
    "constants": ("volmap_ingest.common.constants", None),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return module if attr_name is None else getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
