"""Step 04: Sample pattern generation and world → raster projection.

Pure functions of (surface, camera, raster size). Points behind the camera
or outside the viewport are excluded rather than clamped; in-viewport
points are scaled to raster resolution and clamped to the last row/column.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from wallfuse.core.contracts import CameraState
from wallfuse.steps.s03_surface_registry.contracts import Surface
from wallfuse.utils.geometry import invert_pose, project_onto_plane, transform_points
from .config import SampleProjectionConfig

logger = logging.getLogger(__name__)

RasterCoord = tuple[int, int]


def _grid_steps(grid_size: int) -> np.ndarray:
    if grid_size == 1:
        return np.zeros(1)
    return np.linspace(-1.0, 1.0, grid_size)


def generate_sample_points(
    surface: Surface, config: SampleProjectionConfig | None = None,
) -> np.ndarray:
    """World-space sample points (K, 3) spread over the surface.

    A grid_size x grid_size lattice over the two in-plane local axes, centered
    on the local centroid, then flattened onto the surface plane.
    """
    config = config or SampleProjectionConfig()
    center = surface.local_center()
    half = surface.local_half_extents()
    n_local = surface.local_normal()

    # In-plane axes: the two local axes least aligned with the normal
    axis_a, axis_b = np.argsort(np.abs(n_local), kind="stable")[:2]

    steps = _grid_steps(config.sample_grid_size) * config.sample_spread
    offsets = np.zeros((len(steps) ** 2, 3))
    grid_a, grid_b = np.meshgrid(steps, steps, indexing="ij")
    offsets[:, axis_a] = grid_a.ravel() * half[axis_a]
    offsets[:, axis_b] = grid_b.ravel() * half[axis_b]

    local = project_onto_plane(center + offsets, center, n_local)
    return transform_points(surface.pose(), local)


class SampleProjector:
    """Project world points through a pinhole camera into raster pixels."""

    def __init__(self, config: SampleProjectionConfig | None = None):
        self.config = config or SampleProjectionConfig()

    def to_viewport(self, points: np.ndarray, camera: CameraState) -> tuple[np.ndarray, np.ndarray]:
        """Viewport pixel coordinates (N, 2) and an on-screen mask (N,)."""
        w2c = invert_pose(camera.pose.c2w())
        pc = transform_points(w2c, points)
        z = pc[:, 2]
        in_front = z > self.config.near_clip

        k = camera.intrinsics
        uv = np.full((len(pc), 2), np.nan)
        uv[in_front, 0] = k.fx * pc[in_front, 0] / z[in_front] + k.cx
        uv[in_front, 1] = k.fy * pc[in_front, 1] / z[in_front] + k.cy

        vw, vh = camera.viewport_size
        on_screen = in_front.copy()
        on_screen[in_front] = (
            (uv[in_front, 0] >= 0) & (uv[in_front, 0] < vw)
            & (uv[in_front, 1] >= 0) & (uv[in_front, 1] < vh)
        )
        return uv, on_screen

    def project_points(
        self,
        points: np.ndarray,
        camera: CameraState,
        raster_size: tuple[int, int],
    ) -> list[Optional[RasterCoord]]:
        """Raster (x, y) for each world point, or None when off-screen."""
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        uv, on_screen = self.to_viewport(points, camera)

        rw, rh = raster_size
        vw, vh = camera.viewport_size
        coords: list[Optional[RasterCoord]] = [None] * len(points)
        for i in np.flatnonzero(on_screen):
            x = int(np.clip(np.rint(uv[i, 0] * rw / vw), 0, rw - 1))
            y = int(np.clip(np.rint(uv[i, 1] * rh / vh), 0, rh - 1))
            coords[i] = (x, y)
        return coords

    def project(
        self,
        point: np.ndarray,
        camera: CameraState,
        raster_size: tuple[int, int],
    ) -> Optional[RasterCoord]:
        """Raster (x, y) for a single world point, or None when off-screen."""
        return self.project_points(np.asarray(point).reshape(1, 3), camera, raster_size)[0]

    def project_surface(
        self,
        surface: Surface,
        camera: CameraState,
        raster_size: tuple[int, int],
    ) -> list[RasterCoord]:
        """Valid raster coordinates of a surface's sample pattern."""
        points = generate_sample_points(surface, self.config)
        coords = [c for c in self.project_points(points, camera, raster_size) if c is not None]
        logger.debug(f"Surface {surface.id}: {len(coords)}/{len(points)} samples on screen")
        return coords
