"""Common Pydantic models shared across the fusion pipeline."""

from __future__ import annotations

import math

import numpy as np
from pydantic import BaseModel, Field, field_validator

from wallfuse.steps.s02_temporal_stabilization.config import StabilizationConfig
from wallfuse.steps.s04_sample_projection.config import SampleProjectionConfig
from wallfuse.steps.s05_wall_classification.config import WallClassificationConfig
from wallfuse.steps.s06_visibility.config import VisibilityConfig
from wallfuse.utils.geometry import make_pose


class CameraIntrinsics(BaseModel):
    """Camera intrinsic parameters (pinhole model) in viewport pixels."""

    fx: float = Field(..., gt=0)
    fy: float = Field(..., gt=0)
    cx: float
    cy: float
    width: int = Field(..., gt=0, description="Viewport width (px)")
    height: int = Field(..., gt=0, description="Viewport height (px)")

    @classmethod
    def from_fov(cls, fov_y_deg: float, width: int, height: int) -> CameraIntrinsics:
        """Square-pixel intrinsics from a vertical field of view."""
        f = (height / 2.0) / math.tan(math.radians(fov_y_deg) / 2.0)
        return cls(fx=f, fy=f, cx=width / 2.0, cy=height / 2.0, width=width, height=height)


class CameraPose(BaseModel):
    """Camera extrinsic: camera-to-world position + quaternion (w, x, y, z).

    Camera axes: +Z forward, +X right, +Y down in the image.
    """

    position: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)
    rotation: list[float] = Field(
        default_factory=lambda: [1.0, 0.0, 0.0, 0.0], min_length=4, max_length=4
    )

    @field_validator("rotation")
    @classmethod
    def _unit_quaternion(cls, v: list[float]) -> list[float]:
        norm = math.sqrt(sum(c * c for c in v))
        if norm < 1e-9:
            raise ValueError("rotation quaternion has zero length")
        return [c / norm for c in v]

    def c2w(self) -> np.ndarray:
        return make_pose(self.position, self.rotation)


class CameraState(BaseModel):
    """Everything the projector needs from the camera at classification time."""

    pose: CameraPose
    intrinsics: CameraIntrinsics

    @property
    def viewport_size(self) -> tuple[int, int]:
        return self.intrinsics.width, self.intrinsics.height


class FusionConfig(BaseModel):
    """Top-level configuration for one fusion session."""

    update_interval: float = Field(
        0.2, ge=0.0, description="Minimum seconds between fusion ticks"
    )
    log_level: str = Field("INFO", description="Logging level used by the CLI")
    stabilization: StabilizationConfig = Field(default_factory=StabilizationConfig)
    projection: SampleProjectionConfig = Field(default_factory=SampleProjectionConfig)
    classification: WallClassificationConfig = Field(default_factory=WallClassificationConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
