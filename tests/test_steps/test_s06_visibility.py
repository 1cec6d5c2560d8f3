"""Tests for s06: visibility hysteresis, eviction and opacity mapping."""

import pytest

from wallfuse.steps.s05_wall_classification.contracts import ClassificationVerdict
from wallfuse.steps.s06_visibility.config import VisibilityConfig
from wallfuse.steps.s06_visibility.contracts import VisibilityInput
from wallfuse.steps.s06_visibility.step import VisibilityStateMachine


def _verdict(surface_id: str, is_wall: bool, confidence: float = 0.8) -> ClassificationVerdict:
    return ClassificationVerdict(
        surface_id=surface_id, is_wall=is_wall, confidence=confidence,
        sampled_ratio=1.0 if is_wall else 0.0, valid_samples=9,
    )


def _step(vsm, ids, verdicts=(), evicted=()):
    return vsm.execute(VisibilityInput(
        verdicts={v.surface_id: v for v in verdicts},
        tracked_ids=list(ids),
        evicted_ids=list(evicted),
    ))


class TestOpacity:
    def test_mapping(self):
        vsm = VisibilityStateMachine()
        assert vsm.wall_opacity(0.8) == pytest.approx(0.88)
        assert vsm.wall_opacity(0.0) == pytest.approx(0.4)
        assert vsm.wall_opacity(1.0) == pytest.approx(1.0)

    def test_override(self):
        vsm = VisibilityStateMachine(VisibilityConfig(opacity_override=0.6))
        _step(vsm, ["a"], [_verdict("a", True, 0.1)])
        assert vsm.get("a").opacity == pytest.approx(0.6)

    def test_runtime_override_reapplied(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"], [_verdict("a", True, 0.5)])
        vsm.set_opacity_override(0.25)
        assert vsm.get("a").opacity == pytest.approx(0.25)
        vsm.set_opacity_override(None)
        assert vsm.get("a").opacity == pytest.approx(0.7)


class TestHysteresis:
    def test_new_surface_starts_hidden(self):
        vsm = VisibilityStateMachine()
        records = _step(vsm, ["a"])
        assert len(records) == 1
        assert not records[0].visible
        assert records[0].opacity == 0.0

    def test_wall_verdict_shows(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"], [_verdict("a", True)])
        rec = vsm.get("a")
        assert rec.visible and rec.is_wall
        assert rec.opacity == pytest.approx(0.88)

    def test_non_wall_verdict_hides_immediately(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"], [_verdict("a", True)])
        _step(vsm, ["a"], [_verdict("a", False)])
        assert not vsm.get("a").visible
        assert vsm.get("a").opacity == 0.0

    def test_one_tick_grace(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"], [_verdict("a", True)])

        _step(vsm, ["a"])
        rec = vsm.get("a")
        assert rec.visible
        assert rec.missed_ticks == 1
        assert rec.opacity == pytest.approx(0.88)

        _step(vsm, ["a"])
        rec = vsm.get("a")
        assert not rec.visible
        assert rec.missed_ticks == 0

    def test_reconfirmation_resets_grace(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"], [_verdict("a", True)])
        _step(vsm, ["a"])
        _step(vsm, ["a"], [_verdict("a", True)])
        _step(vsm, ["a"])
        assert vsm.get("a").visible

    def test_visible_walls(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a", "b"], [_verdict("a", True), _verdict("b", False)])
        assert vsm.visible_walls() == {"a"}


class TestEviction:
    def test_evicted_record_removed(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a", "b"], [_verdict("a", True)])
        _step(vsm, ["b"], evicted=["a"])
        assert vsm.get("a") is None
        assert len(vsm) == 1

    def test_records_follow_registry_ids(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a", "b"])
        vsm.sync_surfaces(["b"])
        assert [r.surface_id for r in vsm.records()] == ["b"]

    def test_verdict_for_unknown_surface_rejected(self):
        from wallfuse.core.step_base import StepInputError

        vsm = VisibilityStateMachine()
        with pytest.raises(StepInputError):
            _step(vsm, ["a"], [_verdict("ghost", True)])


class TestDebugAndColor:
    def test_show_all_surfaces(self):
        vsm = VisibilityStateMachine(VisibilityConfig(show_all_surfaces=True))
        _step(vsm, ["a", "b"], [_verdict("a", True, 1.0), _verdict("b", False)])
        assert vsm.get("a").opacity == pytest.approx(1.0)
        assert vsm.get("b").visible
        assert vsm.get("b").opacity == pytest.approx(0.4)
        assert vsm.visible_walls() == {"a"}

    def test_wall_color(self):
        vsm = VisibilityStateMachine()
        _step(vsm, ["a"])
        assert vsm.get("a").color == (0.5, 0.8, 1.0)
        vsm.set_wall_color((1.0, 0.0, 0.0))
        assert vsm.get("a").color == (1.0, 0.0, 0.0)
        assert vsm.get("a").to_dict()["color"] == [1.0, 0.0, 0.0]
