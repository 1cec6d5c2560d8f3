"""Configuration for Step 06: Visibility state machine."""

from typing import Optional

from pydantic import BaseModel, Field


class VisibilityConfig(BaseModel):
    base_opacity: float = Field(
        0.4, ge=0.0, le=1.0, description="Opacity floor: opacity = base + confidence * (1 - base)"
    )
    opacity_override: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Fixed opacity for every visible wall (None = mapped)"
    )
    wall_color: tuple[float, float, float] = Field(
        (0.5, 0.8, 1.0), description="RGB tint (0..1) handed to the renderer with each record"
    )
    show_all_surfaces: bool = Field(
        False, description="Debug: show every tracked surface, walls or not"
    )
