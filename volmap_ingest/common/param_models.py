"""Pydantic parameter models for volmap_ingest nodes."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from volmap_ingest.common import constants


class PointcloudInputParams(BaseModel):
    """Pointcloud input handler parameters. Validated once; immutable afterwards."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    topic_name: str = Field(constants.POINTCLOUD_TOPIC_DEFAULT, min_length=1)
    topic_type: Literal["PointCloud2", "Ouster", "Livox"] = constants.TOPIC_TYPE_POINTCLOUD2
    topic_queue_length: int = Field(constants.TOPIC_QUEUE_LENGTH_DEFAULT, gt=0)
    processing_retry_period: float = Field(constants.PROCESSING_RETRY_PERIOD_DEFAULT, gt=0.0)
    max_wait_for_pose: float = Field(constants.MAX_WAIT_FOR_POSE_DEFAULT, ge=0.0)
    # Empty: use the frame_id embedded in each message.
    sensor_frame_id: str = ""
    time_offset: float = 0.0
    undistort_motion: bool = False
    num_undistortion_intervals_per_cloud: int = Field(constants.UNDISTORTION_INTERVALS_PER_CLOUD_DEFAULT, ge=1)
    # Empty: debug output disabled.
    reprojected_pointcloud_topic_name: str = ""
    projected_range_image_topic_name: str = ""


class IngestNodeParams(BaseModel):
    """pointcloud_input_node parameter model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    world_frame: str = Field(constants.WORLD_FRAME_DEFAULT, min_length=1)
    # "package.module:ClassOrFactory", instantiated in order.
    integrators: List[str] = Field(default_factory=list)
    pose_cache_duration: float = Field(constants.POSE_CACHE_DURATION_DEFAULT, gt=0.0)
    executor_threads: int = Field(constants.EXECUTOR_THREADS_DEFAULT, ge=1)

    use_rerun: bool = False
    rerun_spawn: bool = False
    rerun_recording_path: Optional[str] = None

    pointcloud_input: PointcloudInputParams = Field(default_factory=PointcloudInputParams)


def unwrap_ros_parameters(data: Dict[str, Any], node_name: str = "pointcloud_input_node") -> Dict[str, Any]:
    """
    Strip the ROS 2 parameter file wrapper.

    Accepts `{node_name: {ros__parameters: {...}}}`, `{"/**": {ros__parameters: {...}}}`,
    or an already flat dict.
    """
    for key in (node_name, "/**"):
        section = data.get(key)
        if isinstance(section, dict) and "ros__parameters" in section:
            return dict(section["ros__parameters"] or {})
    return dict(data)


def load_params_file(path: str, node_name: str = "pointcloud_input_node") -> IngestNodeParams:
    """Load and validate node parameters from a ROS 2 style YAML file."""
    import yaml

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return IngestNodeParams.model_validate(unwrap_ros_parameters(data, node_name=node_name))
