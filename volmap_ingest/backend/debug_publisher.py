"""
Debug republishing of integrated clouds and projected range images.

Every output is gated on a listener being present so that no work is done
when nobody is watching. Missing listeners or missing data are silent no-ops.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from volmap_ingest.backend.integrators import IntegratorBase
from volmap_ingest.backend.structures.stamped_pointcloud import PosedPointcloud


class DebugSink(ABC):
    """Output channel for debug data (ROS publisher, rerun stream, ...)."""

    @abstractmethod
    def has_subscribers(self) -> bool:
        ...

    @abstractmethod
    def publish(self, stamp_ns: int, payload: Any, frame_id: str = "") -> None:
        ...


class DebugPublisher:
    def __init__(
        self,
        reprojected_pointcloud_sink: Optional[DebugSink] = None,
        projected_range_image_sink: Optional[DebugSink] = None,
    ) -> None:
        self.reprojected_pointcloud_sink = reprojected_pointcloud_sink
        self.projected_range_image_sink = projected_range_image_sink

    def should_publish_reprojected_pointcloud(self) -> bool:
        sink = self.reprojected_pointcloud_sink
        return sink is not None and sink.has_subscribers()

    def should_publish_projected_range_image(self) -> bool:
        sink = self.projected_range_image_sink
        return sink is not None and sink.has_subscribers()

    def publish(
        self,
        stamp_ns: int,
        posed_pointcloud: PosedPointcloud,
        range_image_source: Optional[IntegratorBase] = None,
        sensor_frame: str = "",
    ) -> None:
        """
        Args:
            stamp_ns: stamp for both outputs (the cloud's median time)
            posed_pointcloud: the cloud that was just integrated
            range_image_source: first integrator, if it exports range images
            sensor_frame: frame of the range image (the cloud's sensor frame)
        """
        if self.should_publish_reprojected_pointcloud():
            self.reprojected_pointcloud_sink.publish(stamp_ns, posed_pointcloud)
        if range_image_source is not None and self.should_publish_projected_range_image():
            range_image = range_image_source.last_posed_range_image()
            if range_image is not None:
                self.projected_range_image_sink.publish(stamp_ns, range_image, sensor_frame)
