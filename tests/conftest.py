"""Shared pytest fixtures for wallfuse tests."""

import math

import numpy as np
import pytest

from wallfuse.core.contracts import CameraIntrinsics, CameraPose, CameraState
from wallfuse.steps.s01_segmentation_raster.contracts import SegmentationRaster, normalize_class_id
from wallfuse.steps.s03_surface_registry.contracts import Alignment, Surface
from wallfuse.steps.s04_sample_projection.projector import SampleProjector, generate_sample_points

WALL_CLASS_ID = 9
# Far from the wall value: class ids 0..34 fall within the default 0.1 tolerance of id 9
BACKGROUND_CLASS_ID = 100
RASTER_SIZE = 100

# Rotation of -90° about X: local +Y (plane normal) → world -Z, local +Z → world +Y
FACING_CAMERA = [math.sqrt(0.5), -math.sqrt(0.5), 0.0, 0.0]


@pytest.fixture
def intrinsics() -> CameraIntrinsics:
    """100x100 viewport, 100 px focal length, principal point at the center."""
    return CameraIntrinsics(fx=100, fy=100, cx=50, cy=50, width=100, height=100)


@pytest.fixture
def camera(intrinsics: CameraIntrinsics) -> CameraState:
    """Camera at the origin looking down +Z."""
    return CameraState(pose=CameraPose(), intrinsics=intrinsics)


def make_wall(surface_id: str = "wall", z: float = 3.0, x: float = 0.0, **kwargs) -> Surface:
    """2x2 m vertical plane at (x, 0, z) facing the origin."""
    kwargs.setdefault("alignment", Alignment.VERTICAL)
    return Surface(
        id=surface_id,
        position=np.array([x, 0.0, z]),
        rotation=np.array(FACING_CAMERA),
        boundary=np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]]),
        **kwargs,
    )


@pytest.fixture
def wall_surface() -> Surface:
    return make_wall()


@pytest.fixture
def sample_coords(wall_surface: Surface, camera: CameraState) -> list[tuple[int, int]]:
    """Raster coordinates of the wall's 9 sample points (all on screen)."""
    points = generate_sample_points(wall_surface)
    coords = SampleProjector().project_points(points, camera, (RASTER_SIZE, RASTER_SIZE))
    assert all(c is not None for c in coords)
    return coords


def paint_raster(
    coords: list[tuple[int, int]],
    wall_count: int,
    confidence: float = 0.8,
    size: int = RASTER_SIZE,
    wall_class_id: int = WALL_CLASS_ID,
    background_class_id: int = BACKGROUND_CLASS_ID,
) -> SegmentationRaster:
    """Raster whose first ``wall_count`` coords read ``wall_class_id`` at ``confidence``.

    All other pixels read ``background_class_id`` with zero confidence.
    """
    data = np.zeros((size, size, 4), dtype=np.float32)
    data[:, :, 0] = normalize_class_id(background_class_id)
    for x, y in coords[:wall_count]:
        data[y, x, 0] = normalize_class_id(wall_class_id)
        data[y, x, 1] = confidence
    return SegmentationRaster.from_array(data)


@pytest.fixture
def raster_factory(sample_coords):
    def _make(wall_count: int, confidence: float = 0.8) -> SegmentationRaster:
        return paint_raster(sample_coords, wall_count, confidence)

    return _make


@pytest.fixture
def wall_factory():
    """Factory for facing-camera walls: wall_factory(id, z=3.0, x=0.0, **fields)."""
    return make_wall


@pytest.fixture
def paint():
    """Factory for rasters with wall pixels at given coords (see paint_raster)."""
    return paint_raster
