"""Configuration for Step 02: Temporal stabilization."""

from typing import Literal

from pydantic import BaseModel, Field


class StabilizationConfig(BaseModel):
    enable_stabilization: bool = Field(
        True, description="Blend recent rasters; when off the latest raster passes through"
    )
    stabilization_frame_count: int = Field(
        3, ge=1, le=32, description="Ring buffer capacity (number of rasters blended)"
    )
    stabilization_decay: float = Field(
        0.3, ge=0.0, description="Weight falloff: raster i steps old gets max(0, 1 - decay*i/N)"
    )
    resize_policy: Literal["reset", "reject"] = Field(
        "reset",
        description="'reset': a raster of a new size re-initializes the ring, "
        "'reject': it is discarded as an input-shape error",
    )
