"""Step 05: Wall classification by sampled majority vote.

For every tracked surface: gate on orientation and geometry, project a
sample pattern into the stabilized raster, and call it a wall when strictly
more than half of the on-screen samples are wall pixels.

Pipeline position: s02 (stabilized raster) + s03 (surfaces) → s05 → s06
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import ClassVar, Optional

import numpy as np

from wallfuse.core.contracts import CameraState
from wallfuse.core.errors import MissingInputError
from wallfuse.core.step_base import BaseStep
from wallfuse.steps.s01_segmentation_raster.contracts import (
    CLASS_CHANNEL,
    CONFIDENCE_CHANNEL,
    normalize_class_id,
)
from wallfuse.steps.s02_temporal_stabilization.contracts import StabilizedRaster
from wallfuse.steps.s03_surface_registry.contracts import Alignment, Surface
from wallfuse.steps.s04_sample_projection.config import SampleProjectionConfig
from wallfuse.steps.s04_sample_projection.projector import SampleProjector
from wallfuse.utils.geometry import UP
from ._pixel_test import wall_pixel_mask
from ._scheduling import select_for_sampling
from .config import WallClassificationConfig
from .contracts import (
    DEGENERATE,
    NOT_VERTICAL,
    RECONFIRMED,
    SUBSUMED,
    TOO_SMALL,
    ClassificationInput,
    ClassificationOutput,
    ClassificationVerdict,
)

logger = logging.getLogger(__name__)

_MIN_WEIGHT = 1e-6


class WallClassifier(
    BaseStep[ClassificationInput, ClassificationOutput, WallClassificationConfig]
):
    name: ClassVar[str] = "wall_classification"
    config_type: ClassVar = WallClassificationConfig

    def __init__(
        self,
        config: WallClassificationConfig | None = None,
        projector: SampleProjector | None = None,
        projection_config: SampleProjectionConfig | None = None,
    ):
        super().__init__(config)
        self.projector = projector or SampleProjector(projection_config)
        self._tick = 0
        self._last_classified: dict[str, int] = {}
        self._cached: dict[str, ClassificationVerdict] = {}

    @property
    def wall_value(self) -> float:
        return normalize_class_id(self.config.wall_class_id)

    def set_wall_class_id(self, class_id: int) -> None:
        """Change the wall class id at runtime (validated 0..255)."""
        if class_id == self.config.wall_class_id:
            return
        self.config = WallClassificationConfig.model_validate(
            {**self.config.model_dump(), "wall_class_id": class_id}
        )
        self._cached.clear()
        logger.info(f"Wall class id set to {class_id}")

    def is_vertical(self, surface: Surface) -> bool:
        if surface.alignment is Alignment.VERTICAL:
            return True
        if surface.alignment is Alignment.HORIZONTAL:
            return False
        return abs(float(np.dot(surface.normal, UP))) < self.config.vertical_threshold

    def validate_inputs(self, inputs: ClassificationInput) -> bool:
        if not isinstance(inputs, ClassificationInput):
            logger.warning(f"Expected ClassificationInput, got {type(inputs).__name__}")
            return False
        return True

    def _gate(self, surface: Surface) -> Optional[ClassificationVerdict]:
        """Not-wall verdict for surfaces that never need sampling, else None."""
        if surface.subsumed_by is not None:
            return self._rejected(surface, SUBSUMED)
        if not self.is_vertical(surface):
            return self._rejected(surface, NOT_VERTICAL, is_vertical=False)
        if not surface.has_geometry():
            return self._rejected(surface, DEGENERATE)
        if self.config.min_surface_area > 0 and surface.area() < self.config.min_surface_area:
            return self._rejected(surface, TOO_SMALL)
        return None

    @staticmethod
    def _rejected(
        surface: Surface, reason: str, is_vertical: bool = True,
    ) -> ClassificationVerdict:
        return ClassificationVerdict(
            surface_id=surface.id,
            is_wall=False,
            confidence=0.0,
            sampled_ratio=0.0,
            is_vertical=is_vertical,
            reason=reason,
        )

    def _sample(
        self, surface: Surface, raster: StabilizedRaster, camera: CameraState,
    ) -> Optional[ClassificationVerdict]:
        coords = self.projector.project_surface(surface, camera, (raster.width, raster.height))
        if not coords:
            return None

        xs = np.array([c[0] for c in coords])
        ys = np.array([c[1] for c in coords])
        class_values = raster.data[ys, xs, CLASS_CHANNEL]
        confidences = raster.data[ys, xs, CONFIDENCE_CHANNEL]

        weight_sum = max(raster.weight_sum, _MIN_WEIGHT)
        mask = wall_pixel_mask(
            class_values,
            confidences,
            wall_value=self.wall_value,
            weight_sum=weight_sum,
            class_tolerance=self.config.class_match_tolerance,
            confidence_threshold=self.config.wall_confidence_threshold,
        )
        wall_samples = int(mask.sum())
        ratio = wall_samples / len(coords)
        confidence = 0.0
        if wall_samples:
            confidence = float(np.clip(confidences[mask].max() / weight_sum, 0.0, 1.0))

        return ClassificationVerdict(
            surface_id=surface.id,
            is_wall=ratio > 0.5,
            confidence=confidence,
            sampled_ratio=ratio,
            valid_samples=len(coords),
            wall_samples=wall_samples,
        )

    def classify_surface(
        self, surface: Surface, raster: StabilizedRaster, camera: CameraState,
    ) -> Optional[ClassificationVerdict]:
        """Classify one surface; None when no sample lands on screen."""
        verdict = self._gate(surface)
        if verdict is not None:
            return verdict
        return self._sample(surface, raster, camera)

    def run(self, inputs: ClassificationInput) -> ClassificationOutput:
        if inputs.raster is None:
            raise MissingInputError("No stabilized raster available")
        if inputs.camera is None:
            raise MissingInputError("No camera state available")

        self._tick += 1
        output = ClassificationOutput()

        candidates: list[Surface] = []
        for surface in inputs.surfaces:
            gated = self._gate(surface)
            if gated is not None:
                output.verdicts[surface.id] = gated
            else:
                candidates.append(surface)

        chosen = set(select_for_sampling(
            [s.id for s in candidates], self._last_classified, self.config.max_surfaces_per_tick,
        ))

        for surface in candidates:
            if surface.id in chosen:
                self._last_classified[surface.id] = self._tick
                verdict = self._sample(surface, inputs.raster, inputs.camera)
                if verdict is None:
                    # Off-screen walls must not be reconfirmed from a stale verdict
                    self._cached.pop(surface.id, None)
                    output.unclassified.append(surface.id)
                    continue
                self._cached[surface.id] = verdict
                output.verdicts[surface.id] = verdict
                logger.debug(
                    f"Surface {surface.id}: {verdict.wall_samples}/{verdict.valid_samples} "
                    f"wall samples -> {'wall' if verdict.is_wall else 'not wall'} "
                    f"(conf={verdict.confidence:.2f})"
                )
                continue

            cached = self._cached.get(surface.id)
            if (
                self.config.reconfirm_walls
                and surface.id in inputs.visible_walls
                and cached is not None
                and cached.is_wall
            ):
                output.verdicts[surface.id] = replace(cached, reason=RECONFIRMED)
            else:
                output.deferred.append(surface.id)

        return output

    def forget(self, surface_ids: list[str]) -> None:
        """Drop scheduling and cache state for surfaces that left the registry."""
        for surface_id in surface_ids:
            self._last_classified.pop(surface_id, None)
            self._cached.pop(surface_id, None)

    def reset(self) -> None:
        self._tick = 0
        self._last_classified.clear()
        self._cached.clear()
