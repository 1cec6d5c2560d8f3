"""Contracts for Step 06: Visibility records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from wallfuse.steps.s05_wall_classification.contracts import ClassificationVerdict


@dataclass
class VisibilityRecord:
    """Per-surface render state handed to the external renderer."""

    surface_id: str
    visible: bool = False
    opacity: float = 0.0
    is_wall: bool = False
    color: tuple[float, float, float] = (0.5, 0.8, 1.0)
    missed_ticks: int = 0
    last_verdict: Optional[ClassificationVerdict] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "surface_id": self.surface_id,
            "visible": self.visible,
            "opacity": round(self.opacity, 6),
            "is_wall": self.is_wall,
            "color": list(self.color),
        }


@dataclass
class VisibilityInput:
    verdicts: dict[str, ClassificationVerdict] = field(default_factory=dict)
    tracked_ids: list[str] = field(default_factory=list)
    evicted_ids: list[str] = field(default_factory=list)
