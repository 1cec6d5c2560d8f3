"""3D geometry utilities: rotations, rigid transforms, plane math."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

# World up axis (Y-up, matching the tracking subsystem).
UP = np.array([0.0, 1.0, 0.0])


def qvec2rotmat(qvec: list[float] | np.ndarray) -> np.ndarray:
    """Convert quaternion (w, x, y, z) to 3x3 rotation matrix."""
    w, x, y, z = np.asarray(qvec, dtype=np.float64) / np.linalg.norm(qvec)
    return np.array([
        [1 - 2*y*y - 2*z*z, 2*x*y - 2*w*z, 2*x*z + 2*w*y],
        [2*x*y + 2*w*z, 1 - 2*x*x - 2*z*z, 2*y*z - 2*w*x],
        [2*x*z - 2*w*y, 2*y*z + 2*w*x, 1 - 2*x*x - 2*y*y],
    ])


def rotmat2qvec(R: np.ndarray) -> np.ndarray:
    """Convert 3x3 rotation matrix to quaternion (w, x, y, z)."""
    trace = R[0, 0] + R[1, 1] + R[2, 2]
    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (R[2, 1] - R[1, 2]) * s
        y = (R[0, 2] - R[2, 0]) * s
        z = (R[1, 0] - R[0, 1]) * s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s
    return np.array([w, x, y, z])


def make_pose(position: list[float] | np.ndarray, qvec: list[float] | np.ndarray) -> np.ndarray:
    """Build 4x4 local-to-world matrix from a position and quaternion (w, x, y, z)."""
    pose = np.eye(4)
    pose[:3, :3] = qvec2rotmat(qvec)
    pose[:3, 3] = position
    return pose


def invert_pose(pose: np.ndarray) -> np.ndarray:
    """Invert a rigid 4x4 transform without a general matrix inverse."""
    R = pose[:3, :3]
    t = pose[:3, 3]
    inv = np.eye(4)
    inv[:3, :3] = R.T
    inv[:3, 3] = -R.T @ t
    return inv


def transform_points(pose: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply a 4x4 rigid transform to (N, 3) points."""
    points = np.atleast_2d(np.asarray(points, dtype=np.float64))
    return points @ pose[:3, :3].T + pose[:3, 3]


def project_onto_plane(
    points: np.ndarray, origin: np.ndarray, normal: np.ndarray,
) -> np.ndarray:
    """Orthogonally project (N, 3) points onto the plane through origin with normal."""
    n = np.asarray(normal, dtype=np.float64)
    norm = np.linalg.norm(n)
    if norm < 1e-12:
        return np.asarray(points, dtype=np.float64)
    n = n / norm
    offsets = (np.asarray(points, dtype=np.float64) - origin) @ n
    return points - np.outer(offsets, n)


def look_at_rotation(
    eye: list[float] | np.ndarray,
    target: list[float] | np.ndarray,
    up: np.ndarray = UP,
) -> np.ndarray:
    """Camera-to-world rotation looking from eye to target.

    Camera convention: +Z forward, +X right, +Y down in the image.
    """
    forward = np.asarray(target, dtype=np.float64) - np.asarray(eye, dtype=np.float64)
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, up)
    if np.linalg.norm(right) < 1e-9:
        # Looking straight up or down; pick any perpendicular right axis
        right = np.cross(forward, [1.0, 0.0, 0.0])
    right /= np.linalg.norm(right)
    down = np.cross(forward, right)
    return np.column_stack([right, down, forward])
