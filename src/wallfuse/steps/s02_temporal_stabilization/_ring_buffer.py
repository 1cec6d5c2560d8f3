"""Fixed-capacity ring of raster buffers indexed by a rotating write cursor."""

from __future__ import annotations

import numpy as np


class RasterRing:
    """Arena of ``capacity`` equally shaped float32 slots.

    Slots start as all-zero rasters. A slot only counts toward the weight sum
    once a raster has been written to it.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Ring capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.shape: tuple[int, ...] | None = None
        self._slots: list[np.ndarray] = []
        self._filled = np.zeros(capacity, dtype=bool)
        self.cursor = 0

    def __len__(self) -> int:
        return int(self._filled.sum())

    def reset(self, shape: tuple[int, ...]) -> None:
        """Re-initialize every slot to an all-zero raster of ``shape``."""
        self.shape = tuple(shape)
        self._slots = [np.zeros(shape, dtype=np.float32) for _ in range(self.capacity)]
        self._filled[:] = False
        self.cursor = 0

    def release(self) -> None:
        """Drop all slot memory."""
        self.shape = None
        self._slots = []
        self._filled[:] = False
        self.cursor = 0

    def push(self, data: np.ndarray) -> None:
        """Store ``data`` at the cursor, then advance the cursor modulo capacity."""
        if self.shape is None or data.shape != self.shape:
            self.reset(data.shape)
        np.copyto(self._slots[self.cursor], data)
        self._filled[self.cursor] = True
        self.cursor = (self.cursor + 1) % self.capacity

    def steps_ago(self, slot: int) -> int:
        """How many pushes ago ``slot`` was written (0 = most recent)."""
        return (self.cursor - 1 - slot) % self.capacity

    def weights(self, decay: float) -> np.ndarray:
        """Per-slot weight ``max(0, 1 - decay * i / N)``; unfilled slots weigh 0."""
        ages = np.array([self.steps_ago(s) for s in range(self.capacity)], dtype=np.float64)
        w = np.maximum(0.0, 1.0 - decay * ages / self.capacity)
        w[~self._filled] = 0.0
        return w

    def accumulate(self, decay: float) -> tuple[np.ndarray, float]:
        """Weighted additive sum across slots and the total weight applied."""
        if self.shape is None:
            raise ValueError("Ring has not been initialized")
        w = self.weights(decay)
        acc = np.zeros(self.shape, dtype=np.float32)
        for slot, weight in enumerate(w):
            if weight > 0.0:
                acc += np.float32(weight) * self._slots[slot]
        return acc, float(w.sum())

    def latest(self) -> np.ndarray | None:
        if not self._filled.any():
            return None
        return self._slots[(self.cursor - 1) % self.capacity]
