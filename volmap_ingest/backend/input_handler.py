"""
Pointcloud input handler: ingestion queue producer side and integration dispatcher.

Producers (one per subscription callback) call `callback(msg)`: the raw
message is validated, normalized to a GenericStampedPointcloud and pushed.

The dispatcher calls `process_queue()` periodically (never concurrently with
itself). It drains the queue in strict enqueue order:

    head ──► pose lookup / undistortion ──► integrate (all engines, in order)
                 │                               └─► debug publisher
                 ├─ not yet available, within max_wait_for_pose ─► stall (return)
                 └─ permanent failure / wait exceeded ───────────► drop, continue

A head cloud that cannot get its pose yet blocks everything behind it.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
import logging
import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Tuple

from volmap_ingest.backend.debug_publisher import DebugPublisher
from volmap_ingest.backend.integrators import IntegratorBase
from volmap_ingest.backend.operators.undistortion import PointcloudUndistorter, UndistortionResult
from volmap_ingest.backend.pose_resolver import LookupStatus, PoseResolver, PoseSource
from volmap_ingest.backend.structures.pointcloud_queue import PointcloudQueue
from volmap_ingest.backend.structures.stamped_pointcloud import GenericStampedPointcloud, PosedPointcloud
from volmap_ingest.common.param_models import PointcloudInputParams
from volmap_ingest.common.time_utils import ns_to_sec, sec_to_ns
from volmap_ingest.common.timing import WallTimer
from volmap_ingest.frontend.sensors.pointcloud_adapters import PointcloudMessageAdapter, make_message_adapter

_logger = logging.getLogger(__name__)


class _Decision(Enum):
    INTEGRATE = "integrate"
    DEFER = "defer"
    DROP = "drop"


# Drop reasons (keys of IngestionStats.dropped)
DROP_POSE_WAIT_EXCEEDED = "pose_wait_exceeded"
DROP_POSE_NO_LONGER_AVAILABLE = "pose_no_longer_available"
DROP_START_TIME_NOT_IN_TF_BUFFER = "start_time_not_in_tf_buffer"
DROP_INTERMEDIATE_TIME_NOT_IN_TF_BUFFER = "intermediate_time_not_in_tf_buffer"
DROP_UNKNOWN_UNDISTORTION_ERROR = "unknown_undistortion_error"


@dataclass
class IngestionStats:
    received: int = 0
    rejected: int = 0
    enqueued: int = 0
    integrated: int = 0
    deferrals: int = 0
    dropped: Counter = field(default_factory=Counter)


class PointcloudInputHandler:
    """Turns raw point cloud messages into ordered integrator calls."""

    def __init__(
        self,
        params: PointcloudInputParams,
        world_frame: str,
        pose_source: PoseSource,
        integrators: Iterable[IntegratorBase] = (),
        debug_publisher: Optional[DebugPublisher] = None,
        adapter: Optional[PointcloudMessageAdapter] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.params = params
        self.world_frame = world_frame
        self.adapter = adapter if adapter is not None else make_message_adapter(params.topic_type)
        self.resolver = PoseResolver(pose_source, world_frame)
        self.undistorter = PointcloudUndistorter(
            self.resolver, params.num_undistortion_intervals_per_cloud
        )
        self.debug_publisher = debug_publisher
        self.queue = PointcloudQueue(capacity_hint=params.topic_queue_length)
        self.integration_timer = WallTimer()
        self.stats = IngestionStats()

        self._time_offset_ns = sec_to_ns(params.time_offset)
        self._clock = clock
        self._stats_lock = threading.Lock()
        self._processing_lock = threading.Lock()
        # Clock time at which the current head was first deferred.
        self._head_wait_started: Optional[float] = None

        self._integrators: List[IntegratorBase] = []
        self._range_image_source: Optional[IntegratorBase] = None
        for integrator in integrators:
            self.register_integrator(integrator)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @property
    def integrators(self) -> Tuple[IntegratorBase, ...]:
        return tuple(self._integrators)

    def register_integrator(self, integrator: IntegratorBase) -> None:
        """Append an engine; integration order is registration order."""
        if not isinstance(integrator, IntegratorBase):
            raise TypeError(f"expected an IntegratorBase, got {type(integrator).__name__}")
        self._integrators.append(integrator)
        first = self._integrators[0]
        self._range_image_source = first if first.supports_range_image_export() else None

    @property
    def num_pending(self) -> int:
        return len(self.queue)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def callback(self, msg: Any) -> bool:
        """Normalize one raw message and enqueue it. Returns True iff a cloud was enqueued."""
        with self._stats_lock:
            self.stats.received += 1
        cloud = self._to_stamped_pointcloud(msg)
        if cloud is None:
            with self._stats_lock:
                self.stats.rejected += 1
            return False
        self.queue.push(cloud)
        with self._stats_lock:
            self.stats.enqueued += 1
        return True

    def _to_stamped_pointcloud(self, msg: Any) -> Optional[GenericStampedPointcloud]:
        adapter = self.adapter
        try:
            num_points = adapter.num_points(msg)
            native_stamp_ns = adapter.extract_timebase_ns(msg)
            if num_points == 0:
                _logger.warning("Skipping empty pointcloud with timestamp %d.", native_stamp_ns)
                return None

            reason = adapter.validate(msg)
            if reason is not None:
                _logger.warning("Received %s pointcloud with %s", adapter.topic_type, reason)
                return None

            sensor_frame = self.params.sensor_frame_id or adapter.extract_frame_id(msg)
            positions, offsets = adapter.extract_points(msg)
            cloud = GenericStampedPointcloud(native_stamp_ns + self._time_offset_ns, sensor_frame, num_points)
            cloud.extend(positions, offsets)
        except (AttributeError, TypeError, ValueError) as e:
            _logger.warning(
                "Could not decode %s pointcloud: %s: %s", adapter.topic_type, type(e).__name__, e
            )
            return None
        return cloud

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------

    def process_queue(self) -> int:
        """
        Drain the queue until it is empty or the head must wait for its pose.

        Returns the number of clouds integrated in this call.
        """
        if not self._processing_lock.acquire(blocking=False):
            _logger.debug("process_queue already running; skipping this invocation")
            return 0
        try:
            return self._drain()
        finally:
            self._processing_lock.release()

    def _drain(self) -> int:
        num_integrated = 0
        while True:
            oldest = self.queue.peek()
            if oldest is None:
                break

            decision, posed_pointcloud = self._resolve(oldest)
            if decision is _Decision.DEFER:
                with self._stats_lock:
                    self.stats.deferrals += 1
                return num_integrated

            self.queue.pop()
            self._head_wait_started = None
            if decision is _Decision.DROP:
                continue

            self._integrate(oldest, posed_pointcloud)
            num_integrated += 1
        return num_integrated

    def _drop(self, reason: str) -> Tuple[_Decision, None]:
        with self._stats_lock:
            self.stats.dropped[reason] += 1
        return _Decision.DROP, None

    def _resolve(self, cloud: GenericStampedPointcloud) -> Tuple[_Decision, Optional[PosedPointcloud]]:
        if self.params.undistort_motion:
            return self._resolve_undistorted(cloud)
        return self._resolve_single_pose(cloud)

    def _resolve_undistorted(self, cloud: GenericStampedPointcloud) -> Tuple[_Decision, Optional[PosedPointcloud]]:
        outcome = self.undistorter.undistort(cloud)
        result = outcome.result
        if result is UndistortionResult.SUCCESS:
            return _Decision.INTEGRATE, outcome.posed_pointcloud

        start_time, end_time = cloud.start_time, cloud.end_time
        if result is UndistortionResult.END_TIME_NOT_IN_TF_BUFFER:
            keep_waiting, waited = self._pose_wait(cloud, end_time)
            if keep_waiting:
                return _Decision.DEFER, None
            _logger.warning(
                "Waited %.3fs (max_wait_for_pose %.3fs) but still could not look up end pose for pointcloud with frame \"%s\" "
                "in world frame \"%s\" spanning time interval [%d, %d]. Skipping pointcloud.",
                waited, self.params.max_wait_for_pose, cloud.sensor_frame, self.world_frame, start_time, end_time,
            )
            return self._drop(DROP_POSE_WAIT_EXCEEDED)
        if result is UndistortionResult.START_TIME_NOT_IN_TF_BUFFER:
            _logger.warning(
                "Pointcloud end pose is available but start pose at time %d is not (or no longer). "
                "Skipping pointcloud.",
                start_time,
            )
            return self._drop(DROP_START_TIME_NOT_IN_TF_BUFFER)
        if result is UndistortionResult.INTERMEDIATE_TIME_NOT_IN_TF_BUFFER:
            _logger.warning(
                "Could not buffer all transforms for pointcloud spanning time interval [%d, %d]. "
                "This should never happen. Skipping pointcloud.",
                start_time, end_time,
            )
            return self._drop(DROP_INTERMEDIATE_TIME_NOT_IN_TF_BUFFER)
        _logger.warning("Unknown pointcloud undistortion error (%s). Skipping pointcloud.", result)
        return self._drop(DROP_UNKNOWN_UNDISTORTION_ERROR)

    def _resolve_single_pose(self, cloud: GenericStampedPointcloud) -> Tuple[_Decision, Optional[PosedPointcloud]]:
        lookup = self.resolver.lookup(cloud.sensor_frame, cloud.timebase)
        if lookup.ok:
            return _Decision.INTEGRATE, PosedPointcloud(pose=lookup.pose, points=cloud.positions.copy())

        if lookup.status is LookupStatus.NO_LONGER_AVAILABLE:
            _logger.warning(
                "Pose for pointcloud with frame \"%s\" in world frame \"%s\" at timestamp %d is no longer "
                "buffered (%s); skipping pointcloud.",
                cloud.sensor_frame, self.world_frame, cloud.timebase, lookup.detail,
            )
            return self._drop(DROP_POSE_NO_LONGER_AVAILABLE)

        keep_waiting, waited = self._pose_wait(cloud, cloud.timebase)
        if keep_waiting:
            return _Decision.DEFER, None
        _logger.warning(
            "Waited %.3fs (max_wait_for_pose %.3fs) but still could not look up pose for pointcloud with frame \"%s\" in world frame "
            "\"%s\" at timestamp %d; skipping pointcloud.",
            waited, self.params.max_wait_for_pose, cloud.sensor_frame, self.world_frame, cloud.timebase,
        )
        return self._drop(DROP_POSE_WAIT_EXCEEDED)

    def _pose_wait(self, cloud: GenericStampedPointcloud, boundary_ns: int) -> Tuple[bool, float]:
        """
        (keep waiting?, waited seconds) for the head whose pose at boundary_ns is not available yet.

        Waited time is the larger of
        - data time: newest pose-source / newest queued cloud stamp minus the boundary
        - clock time since this head was first deferred (wall or ROS time)
        """
        now = self._clock()
        if self._head_wait_started is None:
            self._head_wait_started = now

        reference_ns = self._newest_data_time(cloud)
        waited = max(ns_to_sec(reference_ns - boundary_ns), now - self._head_wait_started)
        if waited < self.params.max_wait_for_pose:
            _logger.debug(
                "Pose for pointcloud at %d not available yet (waited %.3fs of %.3fs); retrying later.",
                boundary_ns, waited, self.params.max_wait_for_pose,
            )
            return True, waited
        return False, waited

    def _newest_data_time(self, cloud: GenericStampedPointcloud) -> int:
        newest = cloud.timebase
        newest_cloud = self.queue.peek_newest()
        if newest_cloud is not None:
            newest = max(newest, newest_cloud.timebase)
        newest_pose = self.resolver.newest_timestamp(cloud.sensor_frame)
        if newest_pose is not None:
            newest = max(newest, int(newest_pose))
        return newest

    def _integrate(self, cloud: GenericStampedPointcloud, posed_pointcloud: PosedPointcloud) -> None:
        _logger.info(
            "Inserting pointcloud with %d points. Remaining pointclouds in queue: %d.",
            posed_pointcloud.size, len(self.queue),
        )
        self.integration_timer.start()
        try:
            for integrator in self._integrators:
                integrator.integrate_pointcloud(posed_pointcloud)
        finally:
            self.integration_timer.stop()
        with self._stats_lock:
            self.stats.integrated += 1
        _logger.info(
            "Integrated new pointcloud in %.6fs. Total integration time: %.6fs.",
            self.integration_timer.last_episode_wall_time, self.integration_timer.total_wall_time,
        )

        if self.debug_publisher is not None:
            self.debug_publisher.publish(
                cloud.median_time, posed_pointcloud, self._range_image_source, cloud.sensor_frame
            )
