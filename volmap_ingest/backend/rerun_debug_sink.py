"""
Rerun debug sinks: reprojected clouds and projected range images (no ROS needed).

Both sinks share one RerunRecording. Call init() once when use_rerun is True;
a sink reports listeners only after the recording is active. Optional: spawn
viewer or save to .rrd file and open with `rerun recording.rrd`.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from volmap_ingest.backend.debug_publisher import DebugSink
from volmap_ingest.backend.structures.stamped_pointcloud import PosedPointcloud, PosedRangeImage
from volmap_ingest.common import constants
from volmap_ingest.common.time_utils import ns_to_sec

_logger = logging.getLogger(__name__)


def _set_rerun_time(rr, time_sec: float) -> None:
    """Set current time on the sensor timeline across rerun API versions."""
    if hasattr(rr, "set_time_seconds"):
        rr.set_time_seconds(constants.RERUN_TIMELINE, time_sec)
    else:
        rr.set_time(constants.RERUN_TIMELINE, timestamp=time_sec)


class RerunRecording:
    """Owns the global rerun recording used by the debug sinks."""

    def __init__(
        self,
        application_id: str = constants.RERUN_APPLICATION_ID,
        spawn: bool = False,
        recording_path: Optional[str] = None,
    ):
        self._application_id = application_id
        self._spawn = spawn
        self._recording_path = recording_path
        self._rr = None

    @property
    def active(self) -> bool:
        return self._rr is not None

    @property
    def rr(self):
        return self._rr

    def init(self) -> bool:
        """Initialize Rerun (spawn viewer and/or record to file). Returns True if active."""
        if self._rr is not None:
            return True
        import rerun as rr

        rr.init(
            application_id=self._application_id,
            default_enabled=True,
            spawn=self._spawn,
        )
        # Recording to file: save() must come before any log call.
        if self._recording_path and not self._spawn:
            rr.save(self._recording_path)
        self._rr = rr
        _logger.info(
            "Rerun recording '%s' active (spawn=%s, path=%s)",
            self._application_id, self._spawn, self._recording_path or "-",
        )
        return True

    def flush(self) -> None:
        """Flush recording (call at shutdown if desired)."""
        if self._rr is None:
            return
        rec = self._rr.get_global_data_recording()
        if rec is not None:
            rec.flush()


class RerunPointcloudSink(DebugSink):
    """Logs integrated clouds as Points3D in the world frame."""

    def __init__(self, recording: RerunRecording, entity_path: str = constants.RERUN_POINTCLOUD_ENTITY):
        self.recording = recording
        self.entity_path = entity_path

    def has_subscribers(self) -> bool:
        return self.recording.active

    def publish(self, stamp_ns: int, payload: PosedPointcloud, frame_id: str = "") -> None:
        rr = self.recording.rr
        if rr is None:
            return
        _set_rerun_time(rr, ns_to_sec(stamp_ns))
        pts = np.asarray(payload.points_in_world(), dtype=np.float32).reshape(-1, 3)
        rr.log(self.entity_path, rr.Points3D(positions=pts))


class RerunRangeImageSink(DebugSink):
    """Logs projected range images as DepthImage (meters)."""

    def __init__(self, recording: RerunRecording, entity_path: str = constants.RERUN_RANGE_IMAGE_ENTITY):
        self.recording = recording
        self.entity_path = entity_path

    def has_subscribers(self) -> bool:
        return self.recording.active

    def publish(self, stamp_ns: int, payload: PosedRangeImage, frame_id: str = "") -> None:
        rr = self.recording.rr
        if rr is None:
            return
        _set_rerun_time(rr, ns_to_sec(stamp_ns))
        depth_f = np.asarray(payload.ranges, dtype=np.float32)
        if hasattr(rr, "DepthImage"):
            rr.log(self.entity_path, rr.DepthImage(depth_f))
        else:
            rr.log(self.entity_path, rr.Image(depth_f))
