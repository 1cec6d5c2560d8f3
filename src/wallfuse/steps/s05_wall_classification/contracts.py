"""Contracts for Step 05: Wall classification."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from wallfuse.core.contracts import CameraState
from wallfuse.steps.s02_temporal_stabilization.contracts import StabilizedRaster
from wallfuse.steps.s03_surface_registry.contracts import Surface

# Verdict reasons
SAMPLED = "sampled"
NOT_VERTICAL = "not_vertical"
DEGENERATE = "degenerate"
TOO_SMALL = "too_small"
SUBSUMED = "subsumed"
RECONFIRMED = "reconfirmed"


@dataclass(frozen=True)
class ClassificationVerdict:
    surface_id: str
    is_wall: bool
    confidence: float
    sampled_ratio: float
    valid_samples: int = 0
    wall_samples: int = 0
    is_vertical: bool = True
    reason: str = SAMPLED

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ClassificationInput:
    surfaces: list[Surface]
    raster: Optional[StabilizedRaster]
    camera: Optional[CameraState]
    visible_walls: set[str] = field(default_factory=set)


@dataclass
class ClassificationOutput:
    verdicts: dict[str, ClassificationVerdict] = field(default_factory=dict)
    unclassified: list[str] = field(default_factory=list)  # sampled, nothing on screen
    deferred: list[str] = field(default_factory=list)  # over the per-tick budget
