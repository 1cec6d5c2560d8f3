"""wallfuse core: base stage, shared contracts, errors, logging."""

from .step_base import BaseStep, StepInputError
from .contracts import CameraIntrinsics, CameraPose, CameraState, FusionConfig
from .errors import DuplicateSurfaceError, MissingInputError, RasterShapeError, WallFuseError
from .logging import setup_logging

__all__ = [
    "BaseStep",
    "StepInputError",
    "CameraIntrinsics",
    "CameraPose",
    "CameraState",
    "FusionConfig",
    "WallFuseError",
    "RasterShapeError",
    "MissingInputError",
    "DuplicateSurfaceError",
    "setup_logging",
]
