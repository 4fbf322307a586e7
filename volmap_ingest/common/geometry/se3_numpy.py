"""
SE(3) operations on 6D poses (numpy + scipy).

Pose representation: (x, y, z, rx, ry, rz) where:
- (x, y, z): translation in R^3
- (rx, ry, rz): rotation vector (axis-angle) in so(3)

A pose T_A_B maps points expressed in frame B into frame A:
    p_A = R_A_B @ p_B + t_A_B

Interpolation between two poses is linear in translation and SLERP in
rotation; this matches what tf2 does between two buffered transforms.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation, Slerp


def se3_identity() -> np.ndarray:
    return np.zeros(6, dtype=float)


def se3_from_rotvec_trans(rotvec: np.ndarray, trans: np.ndarray) -> np.ndarray:
    """Build a 6D pose from a rotation vector and a translation."""
    rotvec = np.asarray(rotvec, dtype=float).reshape(3)
    trans = np.asarray(trans, dtype=float).reshape(3)
    return np.concatenate([trans, rotvec])


def se3_from_quat_trans(qx: float, qy: float, qz: float, qw: float, trans: np.ndarray) -> np.ndarray:
    """Build a 6D pose from a quaternion (x, y, z, w) and a translation (ROS convention)."""
    n = float(np.sqrt(qx * qx + qy * qy + qz * qz + qw * qw))
    if n < 1e-12:
        rotvec = np.zeros(3, dtype=float)
    else:
        rotvec = Rotation.from_quat([qx / n, qy / n, qz / n, qw / n]).as_rotvec()
    return se3_from_rotvec_trans(rotvec, trans)


def se3_inverse(a: np.ndarray) -> np.ndarray:
    """For T = (R, t), T^{-1} = (R^T, -R^T t)."""
    a = np.asarray(a, dtype=float).reshape(6)
    R_inv = Rotation.from_rotvec(a[3:6]).inv()
    return se3_from_rotvec_trans(R_inv.as_rotvec(), -R_inv.apply(a[:3]))


def se3_apply(T: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Apply SE(3) transform to point(s).

    T: (x, y, z, rx, ry, rz)
    points: (N, 3) or (3,)
    Returns: transformed points (same shape as input, float64)
    """
    T = np.asarray(T, dtype=float).reshape(6)
    points = np.asarray(points, dtype=float)
    single = points.ndim == 1
    pts = points.reshape(-1, 3)
    if pts.shape[0] == 0:
        return pts.copy()
    out = Rotation.from_rotvec(T[3:6]).apply(pts) + T[:3]
    return out.reshape(-1) if single else out


def se3_interpolate(
    stamps: Sequence[float],
    poses: np.ndarray,
    query_stamps: Sequence[float],
) -> np.ndarray:
    """
    Interpolate a sampled trajectory at query stamps.

    Args:
        stamps: (K,) strictly increasing sample times
        poses: (K, 6) poses at those times
        query_stamps: (M,) times inside [stamps[0], stamps[-1]]

    Returns:
        (M, 6) poses; translation linear, rotation SLERP.
    """
    stamps = np.asarray(stamps, dtype=float).reshape(-1)
    poses = np.asarray(poses, dtype=float).reshape(-1, 6)
    query = np.asarray(query_stamps, dtype=float).reshape(-1)
    if stamps.shape[0] != poses.shape[0]:
        raise ValueError(f"stamps/poses length mismatch: {stamps.shape[0]} vs {poses.shape[0]}")
    if stamps.shape[0] == 0:
        raise ValueError("cannot interpolate an empty trajectory")
    if query.shape[0] == 0:
        return np.zeros((0, 6), dtype=float)
    if stamps.shape[0] == 1:
        return np.repeat(poses[:1], query.shape[0], axis=0)
    if np.any(np.diff(stamps) <= 0.0):
        raise ValueError("interpolation stamps must be strictly increasing")

    query_clamped = np.clip(query, stamps[0], stamps[-1])
    trans = np.stack(
        [np.interp(query_clamped, stamps, poses[:, k]) for k in range(3)],
        axis=1,
    )
    slerp = Slerp(stamps, Rotation.from_rotvec(poses[:, 3:6]))
    rotvecs = slerp(query_clamped).as_rotvec().reshape(-1, 3)
    return np.concatenate([trans, rotvecs], axis=1)


def se3_apply_batch(poses: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply one pose per point: poses (N, 6), points (N, 3) -> (N, 3)."""
    poses = np.asarray(poses, dtype=float).reshape(-1, 6)
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if poses.shape[0] != points.shape[0]:
        raise ValueError(f"poses/points length mismatch: {poses.shape[0]} vs {points.shape[0]}")
    if points.shape[0] == 0:
        return points.copy()
    return Rotation.from_rotvec(poses[:, 3:6]).apply(points) + poses[:, :3]
