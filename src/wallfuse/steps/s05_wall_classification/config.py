"""Configuration for Step 05: Wall classification."""

from pydantic import BaseModel, Field


class WallClassificationConfig(BaseModel):
    # Orientation gate
    vertical_threshold: float = Field(
        0.3, ge=0.0, le=1.0,
        description="Unknown-alignment surfaces are vertical when |dot(normal, up)| < this",
    )

    # Per-pixel wall test
    wall_class_id: int = Field(9, ge=0, le=255, description="Class id denoting 'wall' (ADE20K: 9)")
    class_match_tolerance: float = Field(
        0.1, gt=0.0, description="Max |class value - wall_class_id/255| for a class match"
    )
    wall_confidence_threshold: float = Field(
        0.3, ge=0.0, le=1.0, description="Confidence above this marks a wall pixel on its own"
    )

    # Surface gates
    min_surface_area: float = Field(
        0.0, ge=0.0, description="Surfaces smaller than this (m²) are never walls; 0 disables"
    )

    # Per-tick budget
    max_surfaces_per_tick: int = Field(
        4, ge=1, description="Max surfaces resampled per tick (least recently classified first)"
    )
    reconfirm_walls: bool = Field(
        True, description="Reuse cached verdicts for visible walls left out by the budget"
    )
