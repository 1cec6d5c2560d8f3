"""Base class for the per-tick fusion stages.

Every stage declares a typed Config via a Pydantic model and implements
``run()`` plus ``validate_inputs()``. The engine calls ``execute()`` once per
tick, so timing is logged at DEBUG rather than INFO.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
ConfigT = TypeVar("ConfigT", bound=BaseModel)

logger = logging.getLogger(__name__)


class StepInputError(ValueError):
    """Raised by ``execute()`` when ``validate_inputs()`` rejects the input."""


class BaseStep(ABC, Generic[InputT, OutputT, ConfigT]):
    """Abstract base for fusion stages.

    Subclasses must:
    1. Set class variables: name, config_type
    2. Implement run() and validate_inputs()

    Example:
        class TemporalStabilizer(BaseStep[SegmentationRaster, StabilizedRaster | None,
                                          StabilizationConfig]):
            name = "temporal_stabilization"
            config_type = StabilizationConfig

            def run(self, inputs: SegmentationRaster) -> StabilizedRaster | None: ...
            def validate_inputs(self, inputs: SegmentationRaster) -> bool: ...
    """

    name: ClassVar[str] = ""
    config_type: ClassVar[type[BaseModel]]

    def __init__(self, config: ConfigT | None = None):
        self.config = config if config is not None else self.config_type()

    @abstractmethod
    def run(self, inputs: InputT) -> OutputT:
        """Execute this stage for one tick."""
        ...

    @abstractmethod
    def validate_inputs(self, inputs: InputT) -> bool:
        """Check that the tick input is usable."""
        ...

    def execute(self, inputs: InputT) -> OutputT:
        """Run with validation and timing."""
        step_name = self.name or self.__class__.__name__

        if not self.validate_inputs(inputs):
            raise StepInputError(f"[{step_name}] Input validation failed")

        t0 = time.perf_counter()
        result = self.run(inputs)
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(f"[{step_name}] Done in {elapsed_ms:.2f}ms")
        return result

    @classmethod
    def get_config_schema(cls) -> dict[str, Any]:
        """Return JSON schema for config."""
        return cls.config_type.model_json_schema()
