"""Composition root: owns the fusion stages and runs them once per tick.

Inputs arrive through ``submit_delta`` and ``submit_raster``; they are only
queued. ``tick()`` applies queued deltas in arrival order, consumes at most
one raster (the newest), then runs Stabilize → Classify → Visibility.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

import numpy as np

from wallfuse.steps.s01_segmentation_raster.contracts import SegmentationRaster
from wallfuse.steps.s02_temporal_stabilization.step import TemporalStabilizer
from wallfuse.steps.s03_surface_registry.contracts import TrackingDelta
from wallfuse.steps.s03_surface_registry.registry import SurfaceRegistry
from wallfuse.steps.s04_sample_projection.projector import SampleProjector
from wallfuse.steps.s05_wall_classification.contracts import (
    ClassificationInput,
    ClassificationVerdict,
)
from wallfuse.steps.s05_wall_classification.step import WallClassifier
from wallfuse.steps.s06_visibility.contracts import VisibilityInput, VisibilityRecord
from wallfuse.steps.s06_visibility.step import VisibilityStateMachine
from .contracts import CameraState, FusionConfig
from .errors import MissingInputError, RasterShapeError
from .step_base import StepInputError

logger = logging.getLogger(__name__)

CameraProvider = Callable[[], Optional[CameraState]]

# Timestamps within this of the interval still count as due
_TIME_EPS = 1e-6


@dataclass
class FusionDiagnostics:
    total_surfaces: int = 0
    vertical_surfaces: int = 0
    wall_surfaces: int = 0
    ticks_run: int = 0
    ticks_skipped: int = 0
    rasters_received: int = 0
    rasters_rejected: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class TickResult:
    time: float
    classified: bool
    skipped_reason: Optional[str] = None
    verdicts: dict[str, ClassificationVerdict] = field(default_factory=dict)
    records: list[VisibilityRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "classified": self.classified,
            "skipped_reason": self.skipped_reason,
            "verdicts": {sid: v.to_dict() for sid, v in self.verdicts.items()},
            "records": [r.to_dict() for r in self.records],
        }


class FusionEngine:
    def __init__(
        self,
        config: FusionConfig | None = None,
        camera_provider: CameraProvider | None = None,
        clock: Callable[[], float] = time.monotonic,
        registry: SurfaceRegistry | None = None,
        stabilizer: TemporalStabilizer | None = None,
        classifier: WallClassifier | None = None,
        visibility: VisibilityStateMachine | None = None,
    ):
        self.config = config or FusionConfig()
        self.camera_provider = camera_provider
        self.clock = clock

        self.registry = registry or SurfaceRegistry()
        self.stabilizer = stabilizer or TemporalStabilizer(self.config.stabilization)
        self.classifier = classifier or WallClassifier(
            self.config.classification, projector=SampleProjector(self.config.projection),
        )
        self.visibility = visibility or VisibilityStateMachine(self.config.visibility)

        self.diagnostics = FusionDiagnostics()
        self._pending_deltas: deque[TrackingDelta] = deque()
        self._pending_raster: SegmentationRaster | None = None
        self._last_tick: float | None = None
        self._closed = False

    # ── Inputs ──

    def submit_delta(self, delta: TrackingDelta) -> None:
        """Queue a tracking update for the next tick."""
        if delta:
            self._pending_deltas.append(delta)

    def submit_raster(
        self, raster: SegmentationRaster | np.ndarray, wall_class_id: int | None = None,
    ) -> bool:
        """Queue a completed inference; a newer raster replaces an unconsumed one.

        Returns False when the raster is malformed and was discarded.
        """
        self.diagnostics.rasters_received += 1
        try:
            if not isinstance(raster, SegmentationRaster):
                raster = SegmentationRaster.from_array(raster, wall_class_id=wall_class_id)
        except RasterShapeError as e:
            self._reject_raster(e)
            return False

        if self._pending_raster is not None:
            logger.debug(
                f"Raster #{self._pending_raster.sequence} superseded by #{raster.sequence}"
            )
        self._pending_raster = raster
        return True

    def submit_raster_buffer(
        self, width: int, height: int, buffer, channels: int = 4, wall_class_id: int | None = None,
    ) -> bool:
        """Queue a raster given as a flat row-major pixel buffer."""
        try:
            raster = SegmentationRaster.from_buffer(
                width, height, buffer, channels=channels, wall_class_id=wall_class_id,
            )
        except RasterShapeError as e:
            self.diagnostics.rasters_received += 1
            self._reject_raster(e)
            return False
        return self.submit_raster(raster)

    def _reject_raster(self, error: Exception) -> None:
        self.diagnostics.rasters_rejected += 1
        logger.warning(f"Raster discarded: {error}")

    # ── Tick ──

    def due(self, now: float) -> bool:
        return (
            self._last_tick is None
            or now - self._last_tick >= self.config.update_interval - _TIME_EPS
        )

    def tick(self, now: float | None = None, force: bool = False) -> TickResult | None:
        """Run one fusion tick. Returns None when gated by ``update_interval``."""
        if self._closed:
            raise RuntimeError("FusionEngine is closed")
        now = self.clock() if now is None else now
        if not force and not self.due(now):
            return None
        self._last_tick = now

        while self._pending_deltas:
            self.registry.apply_delta(self._pending_deltas.popleft())
        self.registry.sweep_stopped()

        self._consume_raster()

        evicted = self.registry.drain_evictions()
        if evicted:
            self.classifier.forget(evicted)
        tracked_ids = self.registry.ids()

        try:
            camera = self.camera_provider() if self.camera_provider is not None else None
            output = self.classifier.execute(ClassificationInput(
                surfaces=list(self.registry.all_tracking()),
                raster=self.stabilizer.current(),
                camera=camera,
                visible_walls=self.visibility.visible_walls(),
            ))
        except MissingInputError as e:
            logger.debug(f"Tick at {now:.3f}s skipped: {e}")
            self.visibility.sync_surfaces(tracked_ids, evicted)
            self.diagnostics.ticks_skipped += 1
            self._update_counts()
            return TickResult(
                time=now, classified=False, skipped_reason=str(e),
                records=self.visibility.records(),
            )

        records = self.visibility.execute(VisibilityInput(
            verdicts=output.verdicts, tracked_ids=tracked_ids, evicted_ids=evicted,
        ))
        self.diagnostics.ticks_run += 1
        self._update_counts()
        logger.debug(
            f"Tick at {now:.3f}s: {len(output.verdicts)} verdicts, "
            f"{len(output.unclassified)} off-screen, {len(output.deferred)} deferred"
        )
        return TickResult(time=now, classified=True, verdicts=output.verdicts, records=records)

    def _consume_raster(self) -> None:
        raster, self._pending_raster = self._pending_raster, None
        if raster is None:
            return
        try:
            self.stabilizer.execute(raster)
        except (RasterShapeError, StepInputError) as e:
            self._reject_raster(e)
            return
        if raster.wall_class_id is not None:
            self.classifier.set_wall_class_id(raster.wall_class_id)

    def _update_counts(self) -> None:
        tracking = list(self.registry.all_tracking())
        self.diagnostics.total_surfaces = len(self.registry)
        self.diagnostics.vertical_surfaces = sum(
            1 for s in tracking if self.classifier.is_vertical(s)
        )
        self.diagnostics.wall_surfaces = len(self.visibility.visible_walls())

    # ── Outputs and runtime settings ──

    def records(self) -> list[VisibilityRecord]:
        return self.visibility.records()

    def record(self, surface_id: str) -> VisibilityRecord | None:
        return self.visibility.get(surface_id)

    def set_wall_class_id(self, class_id: int) -> None:
        self.classifier.set_wall_class_id(class_id)

    def set_wall_color(self, color: tuple[float, float, float]) -> None:
        self.visibility.set_wall_color(color)

    def set_wall_opacity(self, opacity: float | None) -> None:
        self.visibility.set_opacity_override(opacity)

    def reset_stabilizer(self) -> None:
        self.stabilizer.reset()

    def close(self) -> None:
        """Stop ticking and release the stabilizer buffers and surface state."""
        if self._closed:
            return
        self._closed = True
        self._pending_deltas.clear()
        self._pending_raster = None
        self.stabilizer.clear()
        self.registry.clear()
        self.registry.drain_evictions()
        self.visibility.clear()
        logger.info("Fusion engine closed")
