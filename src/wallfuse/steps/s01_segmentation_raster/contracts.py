"""Contracts for Step 01: Segmentation raster snapshots.

A raster is one completed inference from the segmentation engine. Pixel
values are normalized to 0..1; channel 0 encodes the class id as
``class_id / 255`` and channel 1 the per-pixel confidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from wallfuse.core.errors import RasterShapeError

CLASS_CHANNEL = 0
CONFIDENCE_CHANNEL = 1
MIN_CHANNELS = 2


def normalize_class_id(class_id: int) -> float:
    """Map a discrete class id (0..255) to its normalized channel value."""
    return class_id / 255.0


@dataclass(frozen=True, eq=False)
class SegmentationRaster:
    """Immutable classification frame: (height, width, channels) float32."""

    data: np.ndarray
    wall_class_id: Optional[int] = None
    sequence: int = 0

    def __post_init__(self) -> None:
        data = self.data
        if data.ndim != 3:
            raise RasterShapeError(f"Raster must be (H, W, C), got shape {data.shape}")
        h, w, c = data.shape
        if h == 0 or w == 0:
            raise RasterShapeError(f"Raster has zero dimensions: {w}x{h}")
        if c < MIN_CHANNELS:
            raise RasterShapeError(f"Raster needs at least {MIN_CHANNELS} channels, got {c}")
        if not np.all(np.isfinite(data)):
            raise RasterShapeError("Raster contains non-finite values")
        if data.min() < 0.0 or data.max() > 1.0:
            raise RasterShapeError(
                f"Raster values must be normalized to 0..1, got {data.min():g}..{data.max():g}"
            )
        data.setflags(write=False)

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        return int(self.data.shape[2])

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.data.shape  # type: ignore[return-value]

    @property
    def class_channel(self) -> np.ndarray:
        return self.data[:, :, CLASS_CHANNEL]

    @property
    def confidence_channel(self) -> np.ndarray:
        return self.data[:, :, CONFIDENCE_CHANNEL]

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        wall_class_id: Optional[int] = None,
        sequence: int = 0,
    ) -> SegmentationRaster:
        """Build a raster from a float (0..1) or integer (0..255) array.

        A 2D array is treated as a class-only raster with zero confidence.
        """
        arr = np.asarray(array)
        if np.issubdtype(arr.dtype, np.integer):
            arr = arr.astype(np.float32) / 255.0
        else:
            arr = arr.astype(np.float32, copy=True)

        if arr.ndim == 2:
            arr = np.stack([arr, np.zeros_like(arr)], axis=-1)
        elif arr.ndim == 3 and arr.shape[2] == 1:
            arr = np.concatenate([arr, np.zeros_like(arr)], axis=-1)

        return cls(data=arr, wall_class_id=wall_class_id, sequence=sequence)

    @classmethod
    def from_buffer(
        cls,
        width: int,
        height: int,
        buffer,
        channels: int = 4,
        wall_class_id: Optional[int] = None,
        sequence: int = 0,
    ) -> SegmentationRaster:
        """Build a raster from a flat row-major pixel buffer (e.g. RGBA32 texture bytes)."""
        if width <= 0 or height <= 0:
            raise RasterShapeError(f"Raster has zero dimensions: {width}x{height}")
        if isinstance(buffer, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(buffer, dtype=np.uint8)
        else:
            flat = np.asarray(buffer).reshape(-1)

        expected = width * height * channels
        if flat.size != expected:
            raise RasterShapeError(
                f"Buffer length {flat.size} does not match {width}x{height}x{channels}={expected}"
            )
        return cls.from_array(
            flat.reshape(height, width, channels),
            wall_class_id=wall_class_id,
            sequence=sequence,
        )

    def pixel(self, x: int, y: int) -> tuple[float, float]:
        """Return (class value, confidence) at raster column x, row y."""
        px = self.data[y, x]
        return float(px[CLASS_CHANNEL]), float(px[CONFIDENCE_CHANNEL])
