"""
Raw message adapter tests (PointCloud2, Ouster, Livox).
"""

import os
import subprocess
import sys
from types import SimpleNamespace

import numpy as np
import pytest

from volmap_ingest.frontend.sensors.pointcloud_adapters import (
    LivoxCustomMsgAdapter,
    OusterPointCloud2Adapter,
    PointCloud2Adapter,
    make_message_adapter,
    pointcloud2_fields_to_arrays,
    validate_xyz_field_order,
)

from ingest_fakes import make_livox_msg, make_pointcloud2


def _fields(*names):
    return [SimpleNamespace(name=n) for n in names]


class TestFieldOrderValidation:
    """x, y, z must be present and consecutive."""

    def test_xyz_accepted(self):
        assert validate_xyz_field_order(_fields("x", "y", "z")) is None

    def test_xyz_after_other_fields_accepted(self):
        assert validate_xyz_field_order(_fields("intensity", "x", "y", "z", "t")) is None

    def test_missing_x(self):
        assert "field x" in validate_xyz_field_order(_fields("y", "z"))

    def test_swapped_y_z(self):
        assert "field y" in validate_xyz_field_order(_fields("x", "z", "y"))

    def test_missing_z(self):
        assert "field z" in validate_xyz_field_order(_fields("x", "y"))


class TestPointCloud2Adapter:
    def test_extract_points(self):
        adapter = PointCloud2Adapter()
        msg = make_pointcloud2([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], stamp_ns=2_000_000_123, frame_id="velodyne")

        assert adapter.validate(msg) is None
        assert adapter.num_points(msg) == 2
        assert adapter.extract_timebase_ns(msg) == 2_000_000_123
        assert adapter.extract_frame_id(msg) == "velodyne"
        positions, offsets = adapter.extract_points(msg)
        assert positions.dtype == np.float32
        assert np.allclose(positions, [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        assert np.array_equal(offsets, [0, 0])

    def test_row_padding_and_multiple_rows(self):
        msg = make_pointcloud2([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        # Reshape to 2 rows x 1 point with 4 bytes of padding per row.
        msg.height, msg.width = 2, 1
        msg.row_step = msg.point_step + 4
        data = bytes(msg.data)
        msg.data = data[:12] + b"\x00" * 4 + data[12:] + b"\x00" * 4

        cols = pointcloud2_fields_to_arrays(msg, ("x", "y", "z"))
        assert np.allclose(cols["x"], [1.0, 4.0])
        assert np.allclose(cols["z"], [3.0, 6.0])

    def test_big_endian(self):
        msg = make_pointcloud2([[1.0, 2.0, 3.0]])
        msg.is_bigendian = True
        msg.data = np.array([1.0, 2.0, 3.0], dtype=">f4").tobytes()

        positions, _ = PointCloud2Adapter().extract_points(msg)
        assert np.allclose(positions, [[1.0, 2.0, 3.0]])

    def test_short_data_raises(self):
        msg = make_pointcloud2([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        msg.data = msg.data[:10]
        with pytest.raises(ValueError):
            PointCloud2Adapter().extract_points(msg)


class TestOusterAdapter:
    def test_per_point_offsets(self):
        adapter = OusterPointCloud2Adapter()
        msg = make_pointcloud2(np.zeros((3, 3)), stamp_ns=1_000, time_offsets=[0, 50_000, 100_000])

        assert adapter.validate(msg) is None
        _, offsets = adapter.extract_points(msg)
        assert offsets.dtype == np.int64
        assert np.array_equal(offsets, [0, 50_000, 100_000])

    def test_missing_time_field_rejected(self):
        msg = make_pointcloud2(np.zeros((3, 3)))
        assert "t" in OusterPointCloud2Adapter().validate(msg)


class TestLivoxAdapter:
    def test_extract(self):
        adapter = LivoxCustomMsgAdapter()
        msg = make_livox_msg(5_000, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], [10, 20])

        assert adapter.num_points(msg) == 2
        assert adapter.extract_timebase_ns(msg) == 5_000
        positions, offsets = adapter.extract_points(msg)
        assert np.allclose(positions, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        assert np.array_equal(offsets, [10, 20])

    def test_empty(self):
        positions, offsets = LivoxCustomMsgAdapter().extract_points(make_livox_msg(0, np.zeros((0, 3)), []))
        assert positions.shape == (0, 3)
        assert offsets.shape == (0,)


class TestAdapterFactory:
    @pytest.mark.parametrize(
        "topic_type,adapter_cls",
        [
            ("PointCloud2", PointCloud2Adapter),
            ("Ouster", OusterPointCloud2Adapter),
            ("Livox", LivoxCustomMsgAdapter),
        ],
    )
    def test_known_types(self, topic_type, adapter_cls):
        assert type(make_message_adapter(topic_type)) is adapter_cls

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            make_message_adapter("Velodyne")


class TestRosFreeImports:
    """Adapters and the ingestion backend must load without a ROS environment."""

    def test_backend_does_not_pull_ros(self):
        pkg_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
        code = (
            "import sys\n"
            "import volmap_ingest.backend.input_handler\n"
            "import volmap_ingest.frontend.sensors.pointcloud_adapters\n"
            "loaded = sorted(m for m in ('rclpy', 'sensor_msgs', 'tf2_ros') if m in sys.modules)\n"
            "assert not loaded, loaded\n"
        )
        env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [pkg_root, os.environ.get("PYTHONPATH")])))
        result = subprocess.run([sys.executable, "-c", code], env=env, capture_output=True, text=True)
        assert result.returncode == 0, result.stderr
