"""Step 06: Visibility state machine with one-tick hysteresis.

States per surface: Hidden ↔ Visible. A fresh verdict sets the state
directly. A visible wall that gets no verdict survives exactly one tick
(missed_ticks = 1) and is hidden on the second consecutive miss.

Pipeline position: s05 (verdicts) + s03 (registry ids) → s06 → renderer
"""

from __future__ import annotations

import logging
from typing import ClassVar

from wallfuse.core.step_base import BaseStep
from wallfuse.steps.s05_wall_classification.contracts import ClassificationVerdict
from .config import VisibilityConfig
from .contracts import VisibilityInput, VisibilityRecord

logger = logging.getLogger(__name__)

GRACE_TICKS = 1


class VisibilityStateMachine(
    BaseStep[VisibilityInput, list[VisibilityRecord], VisibilityConfig]
):
    name: ClassVar[str] = "visibility"
    config_type: ClassVar = VisibilityConfig

    def __init__(self, config: VisibilityConfig | None = None):
        super().__init__(config)
        self._records: dict[str, VisibilityRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get(self, surface_id: str) -> VisibilityRecord | None:
        return self._records.get(surface_id)

    def records(self) -> list[VisibilityRecord]:
        return list(self._records.values())

    def visible_walls(self) -> set[str]:
        return {sid for sid, r in self._records.items() if r.is_wall and r.visible}

    def validate_inputs(self, inputs: VisibilityInput) -> bool:
        if not isinstance(inputs, VisibilityInput):
            logger.warning(f"Expected VisibilityInput, got {type(inputs).__name__}")
            return False
        unknown = set(inputs.verdicts) - set(inputs.tracked_ids)
        if unknown:
            logger.warning(f"Verdicts for surfaces not in the registry: {sorted(unknown)}")
            return False
        return True

    # ── Opacity mapping ──

    def wall_opacity(self, confidence: float) -> float:
        if self.config.opacity_override is not None:
            return self.config.opacity_override
        base = self.config.base_opacity
        return base + confidence * (1.0 - base)

    def _hide(self, record: VisibilityRecord) -> None:
        record.is_wall = False
        record.missed_ticks = 0
        record.last_verdict = None
        record.visible = self.config.show_all_surfaces
        record.opacity = self.config.base_opacity if self.config.show_all_surfaces else 0.0

    def _apply_verdict(self, record: VisibilityRecord, verdict: ClassificationVerdict) -> None:
        if record.is_wall != verdict.is_wall:
            logger.debug(
                f"Surface {record.surface_id}: {'Hidden -> Visible' if verdict.is_wall else 'Visible -> Hidden'}"
            )
        record.last_verdict = verdict
        record.missed_ticks = 0
        if verdict.is_wall:
            record.is_wall = True
            record.visible = True
            record.opacity = self.wall_opacity(verdict.confidence)
        else:
            self._hide(record)
            record.last_verdict = verdict

    def _apply_miss(self, record: VisibilityRecord) -> None:
        if not record.is_wall:
            return
        record.missed_ticks += 1
        if record.missed_ticks > GRACE_TICKS:
            logger.debug(f"Surface {record.surface_id}: not re-confirmed, hiding")
            self._hide(record)

    # ── Lifecycle ──

    def sync_surfaces(self, tracked_ids: list[str], evicted_ids: list[str] | None = None) -> None:
        """Drop records of removed surfaces and add Hidden records for new ones."""
        for surface_id in evicted_ids or []:
            if self._records.pop(surface_id, None) is not None:
                logger.debug(f"Visibility record evicted: {surface_id}")

        tracked = set(tracked_ids)
        for surface_id in [sid for sid in self._records if sid not in tracked]:
            del self._records[surface_id]

        for surface_id in tracked_ids:
            if surface_id not in self._records:
                record = VisibilityRecord(surface_id=surface_id, color=self.config.wall_color)
                self._hide(record)
                self._records[surface_id] = record

    def run(self, inputs: VisibilityInput) -> list[VisibilityRecord]:
        self.sync_surfaces(inputs.tracked_ids, inputs.evicted_ids)
        for surface_id, record in self._records.items():
            verdict = inputs.verdicts.get(surface_id)
            if verdict is not None:
                self._apply_verdict(record, verdict)
            else:
                self._apply_miss(record)
        return self.records()

    # ── Runtime settings ──

    def set_wall_color(self, color: tuple[float, float, float]) -> None:
        self.config = VisibilityConfig.model_validate(
            {**self.config.model_dump(), "wall_color": tuple(color)}
        )
        for record in self._records.values():
            record.color = self.config.wall_color

    def set_opacity_override(self, opacity: float | None) -> None:
        self.config = VisibilityConfig.model_validate(
            {**self.config.model_dump(), "opacity_override": opacity}
        )
        for record in self._records.values():
            if record.is_wall and record.last_verdict is not None:
                record.opacity = self.wall_opacity(record.last_verdict.confidence)

    def clear(self) -> None:
        self._records.clear()
