"""Contracts for Step 03: Tracked surfaces and tracking deltas.

Surfaces come from the spatial-tracking subsystem. Planes carry a boundary
polygon in local plane space (local X/Z, local +Y is the plane normal);
meshes carry local min/max bounds instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from wallfuse.utils.geometry import make_pose, qvec2rotmat

_EPS = 1e-9


class Alignment(str, Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    UNKNOWN = "unknown"


class TrackingState(str, Enum):
    TRACKING = "tracking"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(eq=False)
class Surface:
    """One tracked planar or mesh surface. Mutated only by the SurfaceRegistry."""

    id: str
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    boundary: np.ndarray = field(default_factory=lambda: np.empty((0, 2)))
    local_bounds: Optional[tuple[np.ndarray, np.ndarray]] = None
    normal: Optional[np.ndarray] = None
    alignment: Alignment = Alignment.UNKNOWN
    tracking_state: TrackingState = TrackingState.TRACKING
    subsumed_by: Optional[str] = None

    def __post_init__(self) -> None:
        self.id = str(self.id)
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(4)
        self.boundary = np.asarray(self.boundary, dtype=np.float64).reshape(-1, 2)
        if self.local_bounds is not None:
            lo, hi = self.local_bounds
            self.local_bounds = (
                np.asarray(lo, dtype=np.float64).reshape(3),
                np.asarray(hi, dtype=np.float64).reshape(3),
            )
        if self.normal is None:
            # Plane normal is local +Y carried into world space
            self.normal = qvec2rotmat(self.rotation)[:, 1]
        n = np.asarray(self.normal, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(n)
        self.normal = n / norm if norm > _EPS else n
        self.alignment = Alignment(self.alignment)
        self.tracking_state = TrackingState(self.tracking_state)

    @property
    def is_mesh(self) -> bool:
        return len(self.boundary) == 0 and self.local_bounds is not None

    def pose(self) -> np.ndarray:
        """4x4 local-to-world transform."""
        return make_pose(self.position, self.rotation)

    def local_normal(self) -> np.ndarray:
        """Surface normal expressed in the local frame."""
        if not self.is_mesh:
            return np.array([0.0, 1.0, 0.0])
        n = qvec2rotmat(self.rotation).T @ self.normal
        norm = np.linalg.norm(n)
        return n / norm if norm > _EPS else np.array([0.0, 1.0, 0.0])

    def _boundary_polygon(self):
        from shapely.geometry import Polygon

        if len(self.boundary) < 3:
            return None
        poly = Polygon(self.boundary.tolist())
        if poly.is_empty or poly.area <= _EPS:
            return None
        return poly

    def local_center(self) -> np.ndarray:
        """Centroid of the surface in the local frame."""
        if len(self.boundary) > 0:
            poly = self._boundary_polygon()
            if poly is not None:
                cx, cz = poly.centroid.x, poly.centroid.y
            else:
                cx, cz = self.boundary.mean(axis=0)
            return np.array([cx, 0.0, cz])
        if self.local_bounds is not None:
            lo, hi = self.local_bounds
            return (lo + hi) / 2.0
        return np.zeros(3)

    def local_half_extents(self) -> np.ndarray:
        """Half of the local axis-aligned extent along X, Y, Z."""
        if len(self.boundary) > 0:
            hx, hz = (self.boundary.max(axis=0) - self.boundary.min(axis=0)) / 2.0
            return np.array([hx, 0.0, hz])
        if self.local_bounds is not None:
            lo, hi = self.local_bounds
            return np.abs(hi - lo) / 2.0
        return np.zeros(3)

    def has_geometry(self) -> bool:
        return bool(np.any(self.local_half_extents() > _EPS))

    def area(self) -> float:
        """Surface area in square meters (boundary polygon, or the largest bounds face)."""
        if len(self.boundary) > 0:
            poly = self._boundary_polygon()
            return float(poly.area) if poly is not None else 0.0
        if self.local_bounds is not None:
            full = np.sort(self.local_half_extents() * 2.0)
            return float(full[1] * full[2])
        return 0.0

    def update_from(self, other: Surface) -> None:
        """Copy geometric fields and tracking state from a newer report, in place."""
        self.position = other.position
        self.rotation = other.rotation
        self.boundary = other.boundary
        self.local_bounds = other.local_bounds
        self.normal = other.normal
        self.alignment = other.alignment
        self.tracking_state = other.tracking_state
        self.subsumed_by = other.subsumed_by


@dataclass
class TrackingDelta:
    """One tracking update: surfaces added, updated and removed since the last one."""

    added: list[Surface] = field(default_factory=list)
    updated: list[Surface] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)
