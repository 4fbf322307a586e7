"""
In-memory pose buffer tests: lookup outcomes, interpolation, retention.
"""

import numpy as np
import pytest

from volmap_ingest.backend.pose_resolver import LookupStatus, PoseResolver
from volmap_ingest.backend.structures.pose_buffer import PoseBuffer
from volmap_ingest.common.geometry.se3_numpy import se3_apply, se3_inverse


class TestPoseBufferLookup:
    """tf2-like availability semantics."""

    def test_unknown_pair_not_yet(self, pose_buffer):
        result = pose_buffer.lookup("odom", "lidar", 0)
        assert result.status is LookupStatus.NOT_YET_AVAILABLE

    def test_same_frame_is_identity(self, pose_buffer):
        result = pose_buffer.lookup("odom", "odom", 123)
        assert result.ok
        assert np.allclose(result.pose, 0.0)

    def test_exact_and_interpolated(self, pose_buffer):
        pose_buffer.add_pose("odom", "lidar", 100, [0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        pose_buffer.add_pose("odom", "lidar", 200, [2.0, 0.0, 0.0, 0.0, 0.0, np.pi / 2])

        assert np.allclose(pose_buffer.lookup("odom", "lidar", 200).pose, [2.0, 0.0, 0.0, 0.0, 0.0, np.pi / 2])
        mid = pose_buffer.lookup("odom", "lidar", 150)
        assert mid.ok
        assert np.allclose(mid.pose, [1.0, 0.0, 0.0, 0.0, 0.0, np.pi / 4])

    def test_future_and_past(self, pose_buffer):
        pose_buffer.add_pose("odom", "lidar", 100, np.zeros(6))
        pose_buffer.add_pose("odom", "lidar", 200, np.zeros(6))

        assert pose_buffer.lookup("odom", "lidar", 201).status is LookupStatus.NOT_YET_AVAILABLE
        assert pose_buffer.lookup("odom", "lidar", 99).status is LookupStatus.NO_LONGER_AVAILABLE

    def test_inverse_pair(self, pose_buffer, random_pose):
        pose_buffer.add_pose("lidar", "odom", 100, random_pose)

        result = pose_buffer.lookup("odom", "lidar", 100)
        assert result.ok
        point = np.array([1.0, -2.0, 0.5])
        assert np.allclose(se3_apply(result.pose, se3_apply(random_pose, point)), point, atol=1e-9)
        assert np.allclose(result.pose, se3_inverse(random_pose))

    def test_large_stamps_keep_resolution(self, pose_buffer):
        t0 = 1_700_000_000_000_000_000
        pose_buffer.add_pose("odom", "lidar", t0, np.zeros(6))
        pose_buffer.add_pose("odom", "lidar", t0 + 1_000, [1.0, 0.0, 0.0, 0.0, 0.0, 0.0])

        assert np.isclose(pose_buffer.lookup("odom", "lidar", t0 + 1).pose[0], 0.001)


class TestPoseBufferRetention:
    def test_eviction(self):
        buffer = PoseBuffer(cache_duration=1.0)
        buffer.add_pose("odom", "lidar", 0, np.zeros(6))
        buffer.add_pose("odom", "lidar", 500_000_000, np.zeros(6))
        buffer.add_pose("odom", "lidar", 2_000_000_000, np.zeros(6))

        assert buffer.oldest_timestamp("odom", "lidar") == 2_000_000_000
        assert buffer.lookup("odom", "lidar", 500_000_000).status is LookupStatus.NO_LONGER_AVAILABLE

    def test_out_of_order_insert_and_replace(self, pose_buffer):
        pose_buffer.add_pose("odom", "lidar", 200, np.zeros(6))
        pose_buffer.add_pose("odom", "lidar", 100, np.zeros(6))
        pose_buffer.add_pose("odom", "lidar", 200, [1.0, 0.0, 0.0, 0.0, 0.0, 0.0])

        assert pose_buffer.oldest_timestamp("odom", "lidar") == 100
        assert pose_buffer.newest_timestamp("odom", "lidar") == 200
        assert np.isclose(pose_buffer.lookup("odom", "lidar", 200).pose[0], 1.0)

    def test_newest_across_pairs(self, pose_buffer):
        assert pose_buffer.newest_timestamp() is None
        pose_buffer.add_pose("odom", "lidar", 100, np.zeros(6))
        pose_buffer.add_pose("odom", "imu", 300, np.zeros(6))
        assert pose_buffer.newest_timestamp() == 300

    def test_invalid_cache_duration(self):
        with pytest.raises(ValueError):
            PoseBuffer(cache_duration=0.0)


class TestPoseResolver:
    def test_lookup_many_stops_at_first_failure(self, pose_buffer):
        pose_buffer.add_pose("odom", "lidar", 0, np.zeros(6))
        pose_buffer.add_pose("odom", "lidar", 100, np.zeros(6))
        resolver = PoseResolver(pose_buffer, "odom")

        poses, failed, idx = resolver.lookup_many("lidar", [10, 50, 150, 20])
        assert poses is None
        assert failed.status is LookupStatus.NOT_YET_AVAILABLE
        assert idx == 2

        poses, failed, idx = resolver.lookup_many("lidar", [10, 50])
        assert poses.shape == (2, 6)
        assert failed is None
        assert idx == -1

    def test_world_frame_required(self, pose_buffer):
        with pytest.raises(ValueError):
            PoseResolver(pose_buffer, "")
