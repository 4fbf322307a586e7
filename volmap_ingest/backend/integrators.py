"""
Map-integration engine contract.

Engines (occupancy integrators, projective range-image integrators, ...) live
outside this package. The dispatcher only needs:
- integrate_pointcloud(posed): fold one posed cloud into the map
- supports_range_image_export() / last_posed_range_image(): optional capability
  used for debug output, queried once at registration time
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from importlib import import_module
from typing import Any, Optional

from volmap_ingest.backend.structures.stamped_pointcloud import PosedPointcloud, PosedRangeImage


class IntegratorBase(ABC):
    """Base class for engines registered with the PointcloudInputHandler."""

    @abstractmethod
    def integrate_pointcloud(self, posed_pointcloud: PosedPointcloud) -> None:
        ...

    def supports_range_image_export(self) -> bool:
        return False

    def last_posed_range_image(self) -> Optional[PosedRangeImage]:
        return None


def load_integrator(spec: str, **kwargs: Any) -> IntegratorBase:
    """
    Instantiate an integrator from a "package.module:attr" spec.

    `attr` is a class or factory called with **kwargs.
    """
    module_name, sep, attr_name = spec.partition(":")
    if not sep or not module_name or not attr_name:
        raise ValueError(f"integrator spec must look like 'package.module:attr', got {spec!r}")
    factory = getattr(import_module(module_name), attr_name)
    integrator = factory(**kwargs)
    if not isinstance(integrator, IntegratorBase):
        raise TypeError(
            f"integrator spec {spec!r} produced {type(integrator).__name__}, expected an IntegratorBase"
        )
    return integrator
