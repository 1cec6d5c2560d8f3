"""Step 02: Temporal stabilization of segmentation rasters.

Suppresses per-frame classifier flicker by blending the newest raster with
up to N-1 older ones held in a ring buffer. Newer rasters weigh more; the
current frame always contributes at weight 1.0.

Pipeline position: s01 (raster) → s02 → s05 (classification)
"""

from __future__ import annotations

import logging
from typing import ClassVar, Optional

from wallfuse.core.errors import RasterShapeError
from wallfuse.core.step_base import BaseStep
from wallfuse.steps.s01_segmentation_raster.contracts import SegmentationRaster
from ._ring_buffer import RasterRing
from .config import StabilizationConfig
from .contracts import StabilizedRaster

logger = logging.getLogger(__name__)


class TemporalStabilizer(
    BaseStep[SegmentationRaster, Optional[StabilizedRaster], StabilizationConfig]
):
    name: ClassVar[str] = "temporal_stabilization"
    config_type: ClassVar = StabilizationConfig

    def __init__(self, config: StabilizationConfig | None = None):
        super().__init__(config)
        self._ring = RasterRing(self.config.stabilization_frame_count)
        self._current: StabilizedRaster | None = None

    @property
    def shape(self) -> tuple[int, ...] | None:
        return self._ring.shape

    @property
    def frames_buffered(self) -> int:
        return len(self._ring)

    def validate_inputs(self, inputs: SegmentationRaster) -> bool:
        if not isinstance(inputs, SegmentationRaster):
            logger.warning(f"Expected SegmentationRaster, got {type(inputs).__name__}")
            return False
        if (
            self._ring.shape is not None
            and inputs.shape != self._ring.shape
            and self.config.resize_policy == "reject"
        ):
            logger.warning(
                f"Rejecting raster {inputs.width}x{inputs.height}x{inputs.channels}: "
                f"session raster shape is {self._ring.shape[1]}x{self._ring.shape[0]}x{self._ring.shape[2]}"
            )
            return False
        return True

    def run(self, inputs: SegmentationRaster) -> Optional[StabilizedRaster]:
        self.push(inputs)
        return self._current

    def push(self, raster: SegmentationRaster) -> StabilizedRaster:
        """Store a raw raster in the ring and recompute the stabilized raster."""
        if self._ring.shape is not None and raster.shape != self._ring.shape:
            if self.config.resize_policy == "reject":
                raise RasterShapeError(
                    f"Raster shape {raster.shape} differs from session shape {self._ring.shape}"
                )
            logger.info(
                f"Raster size changed {self._ring.shape} -> {raster.shape}, resetting ring"
            )
            self._ring.reset(raster.shape)

        self._ring.push(raster.data)

        if not self.config.enable_stabilization:
            self._current = StabilizedRaster.from_raster(raster)
            return self._current

        acc, weight_sum = self._ring.accumulate(self.config.stabilization_decay)
        self._current = StabilizedRaster(
            data=acc, weight_sum=weight_sum, frames_blended=len(self._ring),
        )
        logger.debug(
            f"Stabilized raster #{raster.sequence}: {len(self._ring)} frames, "
            f"weight_sum={weight_sum:.3f}"
        )
        return self._current

    def current(self) -> Optional[StabilizedRaster]:
        """Latest stabilized raster, or None before the first raster arrives."""
        return self._current

    def reset(self) -> None:
        """Zero every ring slot; the next tick has no stabilized raster."""
        if self._ring.shape is not None:
            self._ring.reset(self._ring.shape)
        self._current = None
        logger.info("Temporal stabilization reset")

    def clear(self) -> None:
        """Release ring memory entirely."""
        self._ring.release()
        self._current = None
