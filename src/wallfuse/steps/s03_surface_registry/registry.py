"""Step 03: Surface registry, the single source of truth for live surfaces.

Only ``apply_added``, ``apply_updated`` and ``apply_removed`` (and the
per-tick ``sweep_stopped``) mutate surfaces. Classification and visibility
only read through ``all_tracking()`` and ``get()``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from wallfuse.core.errors import DuplicateSurfaceError
from .contracts import Surface, TrackingDelta, TrackingState

logger = logging.getLogger(__name__)


class TrackingView:
    """Lazy, restartable view over the surfaces currently in TRACKING state."""

    def __init__(self, surfaces: dict[str, Surface]):
        self._surfaces = surfaces

    def __iter__(self) -> Iterator[Surface]:
        return (
            s for s in self._surfaces.values()
            if s.tracking_state is TrackingState.TRACKING
        )


class SurfaceRegistry:
    def __init__(self) -> None:
        self._surfaces: dict[str, Surface] = {}
        self._pending_evictions: list[str] = []
        self._stopped_last_sweep: set[str] = set()

    def __len__(self) -> int:
        return len(self._surfaces)

    def __contains__(self, surface_id: object) -> bool:
        return surface_id in self._surfaces

    def get(self, surface_id: str) -> Surface | None:
        return self._surfaces.get(surface_id)

    def ids(self) -> list[str]:
        return list(self._surfaces)

    def apply_added(self, surface: Surface) -> None:
        if surface.id in self._surfaces:
            raise DuplicateSurfaceError(surface.id)
        self._surfaces[surface.id] = surface
        logger.debug(f"Surface added: {surface.id} ({surface.alignment.value})")

    def apply_updated(self, surface: Surface) -> None:
        existing = self._surfaces.get(surface.id)
        if existing is None:
            logger.debug(f"Update for unknown surface {surface.id}, treating as add")
            self._surfaces[surface.id] = surface
            return
        existing.update_from(surface)

    def apply_removed(self, surface_id: str) -> None:
        if self._surfaces.pop(surface_id, None) is None:
            logger.debug(f"Remove for unknown surface {surface_id} ignored")
            return
        self._stopped_last_sweep.discard(surface_id)
        self._pending_evictions.append(surface_id)
        logger.debug(f"Surface removed: {surface_id}")

    def apply_delta(self, delta: TrackingDelta) -> None:
        """Apply one tracking update: added, then updated, then removed.

        A duplicate add keeps the existing surface. The rest of the delta is
        still applied, then DuplicateSurfaceError is raised for the first
        duplicate id.
        """
        duplicates: list[str] = []
        for surface in delta.added:
            try:
                self.apply_added(surface)
            except DuplicateSurfaceError:
                logger.error(f"Duplicate add for live surface {surface.id}")
                duplicates.append(surface.id)
        for surface in delta.updated:
            self.apply_updated(surface)
        for surface_id in delta.removed:
            self.apply_removed(surface_id)
        if duplicates:
            raise DuplicateSurfaceError(duplicates[0])

    def sweep_stopped(self) -> list[str]:
        """Remove surfaces that stayed STOPPED across two consecutive sweeps."""
        stopped_now = {
            sid for sid, s in self._surfaces.items()
            if s.tracking_state is TrackingState.STOPPED
        }
        expired = sorted(stopped_now & self._stopped_last_sweep)
        for surface_id in expired:
            logger.info(f"Surface {surface_id} stopped tracking, removing")
            self.apply_removed(surface_id)
        self._stopped_last_sweep = stopped_now - set(expired)
        return expired

    def all_tracking(self) -> TrackingView:
        return TrackingView(self._surfaces)

    def drain_evictions(self) -> list[str]:
        """Return and forget the ids removed since the last drain."""
        evicted, self._pending_evictions = self._pending_evictions, []
        return evicted

    def clear(self) -> None:
        self._pending_evictions.extend(self._surfaces)
        self._surfaces.clear()
        self._stopped_last_sweep.clear()
