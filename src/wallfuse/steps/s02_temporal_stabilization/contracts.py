"""Contracts for Step 02: Temporal stabilization."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from wallfuse.steps.s01_segmentation_raster.contracts import (
    CLASS_CHANNEL,
    CONFIDENCE_CHANNEL,
    SegmentationRaster,
)


@dataclass(frozen=True, eq=False)
class StabilizedRaster:
    """Weighted accumulation of the ring buffer, not renormalized.

    ``weight_sum`` is the total weight of the slots that have received a
    raster. Readers compare against thresholds scaled by it, so a raster
    repeated through every slot classifies exactly like the raw raster.
    """

    data: np.ndarray
    weight_sum: float
    frames_blended: int = 1

    def __post_init__(self) -> None:
        self.data.setflags(write=False)

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.data.shape  # type: ignore[return-value]

    @classmethod
    def from_raster(cls, raster: SegmentationRaster) -> StabilizedRaster:
        """Wrap a raw raster as a single-frame accumulation (weight 1.0)."""
        return cls(data=raster.data, weight_sum=1.0, frames_blended=1)

    def pixel(self, x: int, y: int) -> tuple[float, float]:
        """Return the accumulated (class value, confidence) at column x, row y."""
        px = self.data[y, x]
        return float(px[CLASS_CHANNEL]), float(px[CONFIDENCE_CHANNEL])

    def normalized(self) -> np.ndarray:
        """Accumulation divided by weight_sum (for display and diagnostics)."""
        if self.weight_sum <= 0:
            return np.zeros_like(self.data)
        return self.data / self.weight_sum
