import os
import sys
import pytest
from typing import Dict, Any

# Ensure local package (and the test helpers next to this file) import for pytest collection.
_TEST_DIR = os.path.dirname(__file__)
_PKG_ROOT = os.path.abspath(os.path.join(_TEST_DIR, ".."))
for _path in (_PKG_ROOT, _TEST_DIR):
    if _path not in sys.path:
        sys.path.insert(0, _path)

import numpy as np

from volmap_ingest.backend.structures.pose_buffer import PoseBuffer
from volmap_ingest.common.param_models import PointcloudInputParams

from ingest_fakes import FakeClock


# =============================================================================
# Production Config Fixtures
# =============================================================================


def _load_yaml_file(path: str) -> Dict[str, Any]:
    """Load a YAML config file, handling the ros__parameters wrapper."""
    import yaml
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    section = data.get("pointcloud_input_node") or data.get("/**") or {}
    if "ros__parameters" in section:
        return section["ros__parameters"]
    return data


@pytest.fixture
def config_path() -> str:
    """Path of the shipped node config (config/pointcloud_input.yaml)."""
    path = os.path.join(_PKG_ROOT, "config", "pointcloud_input.yaml")
    if not os.path.exists(path):
        pytest.skip("config/pointcloud_input.yaml not found")
    return path


@pytest.fixture
def prod_config(config_path) -> Dict[str, Any]:
    """Raw parameter dict of the shipped node config."""
    return _load_yaml_file(config_path)


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def pose_buffer() -> PoseBuffer:
    """Empty in-memory pose source (odom <- lidar lookups)."""
    return PoseBuffer(cache_duration=10.0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def input_params():
    """Factory for PointcloudInputParams with test-friendly defaults."""

    def _make(**overrides) -> PointcloudInputParams:
        values = {"topic_type": "PointCloud2", "max_wait_for_pose": 0.5}
        values.update(overrides)
        return PointcloudInputParams(**values)

    return _make


# =============================================================================
# Test Utility Fixtures
# =============================================================================

@pytest.fixture
def identity_pose():
    """Return identity SE(3) pose as 6D vector [x, y, z, rx, ry, rz]."""
    return np.zeros(6, dtype=np.float64)


@pytest.fixture
def random_pose():
    """Generate a small random SE(3) pose for testing."""
    rng = np.random.default_rng(42)
    trans = rng.normal(size=3) * 0.1
    rot = rng.normal(size=3) * 0.05
    return np.concatenate([trans, rot])
