"""Configuration for Step 04: Sample projection."""

from pydantic import BaseModel, Field


class SampleProjectionConfig(BaseModel):
    sample_grid_size: int = Field(
        3, ge=1, le=9, description="Samples per in-plane axis (3 → 3x3 grid incl. centroid)"
    )
    sample_spread: float = Field(
        0.3, gt=0.0, le=1.0, description="Grid offset as a fraction of the surface half-extent"
    )
    near_clip: float = Field(
        0.01, gt=0.0, description="Points closer than this along the view axis are off-screen (m)"
    )
