"""Tests for wallfuse.utils.geometry: rotations, rigid transforms, plane math."""

import math

import numpy as np
import pytest

from wallfuse.utils.geometry import (
    UP,
    invert_pose,
    look_at_rotation,
    make_pose,
    project_onto_plane,
    qvec2rotmat,
    rotmat2qvec,
    transform_points,
)


class TestQuaternions:
    def test_identity(self):
        np.testing.assert_allclose(qvec2rotmat([1, 0, 0, 0]), np.eye(3))

    def test_unnormalized_input(self):
        np.testing.assert_allclose(qvec2rotmat([3, 0, 0, 0]), np.eye(3))

    def test_round_trip(self):
        rng = np.random.default_rng(3)
        for _ in range(20):
            q = rng.normal(size=4)
            q /= np.linalg.norm(q)
            q2 = rotmat2qvec(qvec2rotmat(q))
            # q and -q encode the same rotation
            assert min(np.abs(q - q2).max(), np.abs(q + q2).max()) < 1e-9

    def test_rotation_about_x(self):
        s = math.sqrt(0.5)
        R = qvec2rotmat([s, -s, 0, 0])
        np.testing.assert_allclose(R @ [0, 1, 0], [0, 0, -1], atol=1e-12)
        np.testing.assert_allclose(R @ [0, 0, 1], [0, 1, 0], atol=1e-12)


class TestTransforms:
    def test_make_and_invert_pose(self):
        s = math.sqrt(0.5)
        pose = make_pose([1.0, 2.0, 3.0], [s, 0, s, 0])
        np.testing.assert_allclose(pose @ invert_pose(pose), np.eye(4), atol=1e-12)

    def test_transform_points(self):
        pose = make_pose([1.0, 0.0, 0.0], [1, 0, 0, 0])
        out = transform_points(pose, np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]]))
        np.testing.assert_allclose(out, [[1, 0, 0], [2, 1, 1]])

    def test_transform_single_point(self):
        out = transform_points(np.eye(4), [1.0, 2.0, 3.0])
        assert out.shape == (1, 3)


class TestPlaneProjection:
    def test_projects_onto_plane(self):
        pts = np.array([[1.0, 5.0, 2.0], [0.0, -1.0, 0.0]])
        out = project_onto_plane(pts, np.zeros(3), np.array([0.0, 2.0, 0.0]))
        np.testing.assert_allclose(out, [[1, 0, 2], [0, 0, 0]])

    def test_zero_normal_is_noop(self):
        pts = np.array([[1.0, 5.0, 2.0]])
        np.testing.assert_allclose(project_onto_plane(pts, np.zeros(3), np.zeros(3)), pts)


class TestLookAt:
    def test_forward_is_third_column(self):
        R = look_at_rotation([0, 0, 0], [0, 0, 5])
        np.testing.assert_allclose(R[:, 2], [0, 0, 1])
        # Image-down axis points against world up
        assert R[:, 1] @ UP == pytest.approx(-1.0)
        assert np.linalg.det(R) == pytest.approx(1.0)

    def test_looking_straight_down(self):
        R = look_at_rotation([0, 2, 0], [0, 0, 0])
        assert np.linalg.det(R) == pytest.approx(1.0)
        np.testing.assert_allclose(R[:, 2], [0, -1, 0])
