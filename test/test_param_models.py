"""
Parameter model tests: validation, defaults and the shipped YAML config.
"""

import pydantic
import pytest

from volmap_ingest.common.param_models import (
    IngestNodeParams,
    PointcloudInputParams,
    load_params_file,
    unwrap_ros_parameters,
)


class TestPointcloudInputParams:
    def test_defaults(self):
        params = PointcloudInputParams()
        assert params.topic_type == "PointCloud2"
        assert params.max_wait_for_pose == 1.0
        assert params.undistort_motion is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"topic_type": "Velodyne"},
            {"topic_name": ""},
            {"topic_queue_length": 0},
            {"processing_retry_period": 0.0},
            {"max_wait_for_pose": -0.1},
            {"num_undistortion_intervals_per_cloud": 0},
            {"unknown_key": 1},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(pydantic.ValidationError):
            PointcloudInputParams(**overrides)

    def test_frozen(self):
        params = PointcloudInputParams()
        with pytest.raises(pydantic.ValidationError):
            params.max_wait_for_pose = 3.0


class TestConfigLoading:
    def test_unwrap_variants(self):
        inner = {"world_frame": "map"}
        assert unwrap_ros_parameters({"pointcloud_input_node": {"ros__parameters": inner}}) == inner
        assert unwrap_ros_parameters({"/**": {"ros__parameters": inner}}) == inner
        assert unwrap_ros_parameters(inner) == inner

    def test_shipped_config_is_valid(self, config_path, prod_config):
        params = load_params_file(config_path)
        assert isinstance(params, IngestNodeParams)
        assert params.world_frame == prod_config["world_frame"]
        assert params.pointcloud_input.topic_name == prod_config["pointcloud_input"]["topic_name"]

    def test_nested_section(self, tmp_path):
        path = tmp_path / "params.yaml"
        path.write_text(
            "pointcloud_input_node:\n"
            "  ros__parameters:\n"
            "    world_frame: map\n"
            "    integrators: ['my_maps.occupancy:OccupancyIntegrator']\n"
            "    pointcloud_input:\n"
            "      topic_type: Livox\n"
            "      undistort_motion: true\n"
        )
        params = load_params_file(str(path))
        assert params.world_frame == "map"
        assert params.integrators == ["my_maps.occupancy:OccupancyIntegrator"]
        assert params.pointcloud_input.topic_type == "Livox"
        assert params.pointcloud_input.undistort_motion is True

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "params.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_params_file(str(path))
