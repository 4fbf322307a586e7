"""
=============================================================================
POINTCLOUD INPUT NODE - ROS 2 host for the pointcloud ingestion pipeline
=============================================================================

Wiring:
    point cloud topic (PointCloud2 / Ouster / Livox CustomMsg)
        │  subscription callback (ReentrantCallbackGroup) ─► PointcloudInputHandler.callback
        ▼
    PointcloudQueue
        │  processing timer, every processing_retry_period (MutuallyExclusiveCallbackGroup)
        ▼
    PointcloudInputHandler.process_queue ─► integrators ─► debug sinks (ROS topics / rerun)

Poses come from tf2 (world_frame <- sensor frame).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import rclpy
from rclpy.callback_groups import MutuallyExclusiveCallbackGroup, ReentrantCallbackGroup
from rclpy.executors import MultiThreadedExecutor
from rclpy.node import Node
from rclpy.qos import QoSProfile, ReliabilityPolicy, HistoryPolicy, DurabilityPolicy
from sensor_msgs.msg import PointCloud2

from volmap_ingest.backend.debug_publisher import DebugPublisher
from volmap_ingest.backend.input_handler import PointcloudInputHandler
from volmap_ingest.backend.integrators import load_integrator
from volmap_ingest.backend.rerun_debug_sink import RerunPointcloudSink, RerunRangeImageSink, RerunRecording
from volmap_ingest.common import constants
from volmap_ingest.common.param_models import IngestNodeParams, load_params_file
from volmap_ingest.frontend.sensors.ros_debug_sinks import RosPointcloudSink, RosRangeImageSink
from volmap_ingest.frontend.sensors.tf_pose_source import TfPoseSource

NODE_NAME = "pointcloud_input_node"


def _resolve_default_config_path() -> str:
    # Prefer installed share dir when available, else fall back to workspace-relative.
    try:
        from ament_index_python.packages import get_package_share_directory, PackageNotFoundError
    except ImportError:
        share = None
    else:
        try:
            share = get_package_share_directory("volmap_ingest")
        except PackageNotFoundError:
            share = None
    if share is None:
        share = os.path.join(os.path.dirname(__file__), "..", "..", "..")
    return os.path.abspath(os.path.join(share, "config", "pointcloud_input.yaml"))


def _merge_overrides(params: IngestNodeParams, overrides: Dict[str, Any]) -> IngestNodeParams:
    """Apply flat overrides; `pointcloud_input` may be a partial dict."""
    data = params.model_dump()
    for key, value in overrides.items():
        if key == "pointcloud_input" and isinstance(value, dict):
            data["pointcloud_input"].update(value)
        else:
            data[key] = value
    return IngestNodeParams.model_validate(data)


def _message_type(topic_type: str):
    if topic_type == constants.TOPIC_TYPE_LIVOX:
        from livox_ros_driver2.msg import CustomMsg  # type: ignore
        return CustomMsg
    return PointCloud2


class PointcloudInputNode(Node):
    """
    Subscribes to one point cloud topic and feeds the configured integrators.

    Configuration: YAML file from `config_path` (default: share/config/pointcloud_input.yaml),
    then `parameter_overrides` on top (keys of IngestNodeParams).
    """

    def __init__(self, parameter_overrides: Optional[Dict[str, Any]] = None) -> None:
        overrides = dict(parameter_overrides or {})
        config_path = str(overrides.pop("config_path", "") or "")
        ros_overrides = None
        if config_path:
            from rclpy.parameter import Parameter
            ros_overrides = [Parameter("config_path", value=config_path)]
        super().__init__(NODE_NAME, parameter_overrides=ros_overrides)

        self.declare_parameter("config_path", "")
        config_path = str(self.get_parameter("config_path").value).strip()
        if not config_path:
            config_path = _resolve_default_config_path()

        if os.path.exists(config_path):
            params = load_params_file(config_path, node_name=NODE_NAME)
            self.get_logger().info(f"Loaded parameters from {config_path}")
        else:
            params = IngestNodeParams()
            self.get_logger().warn(f"Config file {config_path} not found; using defaults")
        if overrides:
            params = _merge_overrides(params, overrides)
        self.params = params
        input_params = params.pointcloud_input

        self.pose_source = TfPoseSource(self, cache_duration=params.pose_cache_duration)
        self.rerun_recording: Optional[RerunRecording] = None
        self.handler = PointcloudInputHandler(
            input_params,
            world_frame=params.world_frame,
            pose_source=self.pose_source,
            clock=lambda: self.get_clock().now().nanoseconds * 1e-9,
            debug_publisher=self._create_debug_publisher(),
        )
        for spec in params.integrators:
            self.handler.register_integrator(load_integrator(spec))
            self.get_logger().info(f"Registered integrator {spec}")
        if not params.integrators:
            self.get_logger().warn("No integrators configured; pointclouds are only resolved and published")

        qos_sensor = QoSProfile(
            reliability=ReliabilityPolicy.BEST_EFFORT,
            history=HistoryPolicy.KEEP_LAST,
            depth=input_params.topic_queue_length,
            durability=DurabilityPolicy.VOLATILE,
        )
        self.cb_group_input = ReentrantCallbackGroup()
        self.cb_group_processing = MutuallyExclusiveCallbackGroup()
        self.sub_pointcloud = self.create_subscription(
            _message_type(input_params.topic_type),
            input_params.topic_name,
            self.on_pointcloud,
            qos_sensor,
            callback_group=self.cb_group_input,
        )
        self.processing_timer = self.create_timer(
            input_params.processing_retry_period,
            self.on_processing_timer,
            callback_group=self.cb_group_processing,
        )

        mode = "undistorted" if input_params.undistort_motion else "single pose"
        self.get_logger().info(
            f"Pointcloud input: {input_params.topic_name} [{input_params.topic_type}] -> "
            f"world frame '{params.world_frame}' ({mode}, max_wait_for_pose={input_params.max_wait_for_pose}s)"
        )

    def _create_debug_publisher(self) -> DebugPublisher:
        params = self.params
        input_params = params.pointcloud_input
        pointcloud_sink = None
        range_image_sink = None

        if input_params.reprojected_pointcloud_topic_name:
            pointcloud_sink = RosPointcloudSink(
                self, input_params.reprojected_pointcloud_topic_name, params.world_frame
            )
        if input_params.projected_range_image_topic_name:
            range_image_sink = RosRangeImageSink(self, input_params.projected_range_image_topic_name)

        if params.use_rerun:
            self.rerun_recording = RerunRecording(
                spawn=params.rerun_spawn,
                recording_path=params.rerun_recording_path,
            )
            self.rerun_recording.init()
            # ROS topics take precedence when both are configured.
            if pointcloud_sink is None:
                pointcloud_sink = RerunPointcloudSink(self.rerun_recording)
            if range_image_sink is None:
                range_image_sink = RerunRangeImageSink(self.rerun_recording)

        return DebugPublisher(pointcloud_sink, range_image_sink)

    def on_pointcloud(self, msg) -> None:
        self.handler.callback(msg)

    def on_processing_timer(self) -> None:
        self.handler.process_queue()

    def destroy_node(self) -> None:
        stats = self.handler.stats
        self.get_logger().info(
            f"Pointcloud input summary: received={stats.received} rejected={stats.rejected} "
            f"integrated={stats.integrated} dropped={dict(stats.dropped)} pending={self.handler.num_pending} "
            f"integration_time={self.handler.integration_timer.total_wall_time:.3f}s"
        )
        if self.rerun_recording is not None:
            self.rerun_recording.flush()
        super().destroy_node()


def main() -> None:
    # Backend modules log through `logging`; surface their info messages next to the ROS log.
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] [%(name)s]: %(message)s")
    rclpy.init()
    node = PointcloudInputNode()

    threads = int(node.params.executor_threads)
    executor = MultiThreadedExecutor(num_threads=threads)
    executor.add_node(node)
    try:
        executor.spin()
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == "__main__":
    main()
