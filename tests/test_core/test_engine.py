"""Tests for the FusionEngine composition root: tick gating, ordering, scenarios."""

import numpy as np
import pytest

from wallfuse.core.contracts import FusionConfig
from wallfuse.core.errors import DuplicateSurfaceError
from wallfuse.core.engine import FusionEngine
from wallfuse.steps.s02_temporal_stabilization.config import StabilizationConfig
from wallfuse.steps.s03_surface_registry.contracts import TrackingDelta, TrackingState


@pytest.fixture
def engine(camera):
    eng = FusionEngine(camera_provider=lambda: camera)
    yield eng
    eng.close()


class TestTickGating:
    def test_interval(self, engine):
        assert engine.tick(0.0) is not None
        assert engine.tick(0.1) is None
        assert engine.tick(0.2) is not None
        assert engine.tick(0.25, force=True) is not None

    def test_injected_clock(self, camera):
        now = [10.0]
        eng = FusionEngine(camera_provider=lambda: camera, clock=lambda: now[0])
        assert eng.tick() is not None
        now[0] = 10.05
        assert eng.tick() is None
        now[0] = 10.5
        assert eng.tick().time == 10.5

    def test_closed_engine_refuses_ticks(self, camera):
        eng = FusionEngine(camera_provider=lambda: camera)
        eng.close()
        with pytest.raises(RuntimeError):
            eng.tick(0.0)


class TestMissingInputs:
    def test_no_raster_skips_classification(self, engine, wall_surface):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        result = engine.tick(0.0)
        assert not result.classified
        assert "raster" in result.skipped_reason
        assert engine.diagnostics.ticks_skipped == 1
        # Registry delta still applied and a Hidden record created
        assert engine.record("wall").visible is False

    def test_no_camera_retains_visibility(self, wall_surface, raster_factory, camera):
        current = {"camera": camera}
        eng = FusionEngine(camera_provider=lambda: current["camera"])
        eng.submit_delta(TrackingDelta(added=[wall_surface]))
        eng.submit_raster(raster_factory(9))
        eng.tick(0.0)
        assert eng.record("wall").visible

        current["camera"] = None
        for t in (0.2, 0.4, 0.6):
            assert not eng.tick(t).classified
        assert eng.record("wall").visible
        eng.close()


class TestRasterIntake:
    def test_newest_pending_raster_wins(self, engine, wall_surface, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.submit_raster(raster_factory(0))
        engine.tick(0.0)
        assert engine.stabilizer.frames_buffered == 1
        assert not engine.record("wall").visible

    def test_malformed_raster_rejected(self, engine):
        assert engine.submit_raster(np.zeros((0, 4, 2), dtype=np.float32)) is False
        assert engine.submit_raster_buffer(4, 4, bytes(7)) is False
        assert engine.diagnostics.rasters_rejected == 2
        assert engine.diagnostics.rasters_received == 2

    def test_resize_rejected_keeps_last_good(self, camera, raster_factory):
        cfg = FusionConfig(stabilization=StabilizationConfig(resize_policy="reject"))
        eng = FusionEngine(cfg, camera_provider=lambda: camera)
        eng.submit_raster(raster_factory(9))
        eng.tick(0.0)
        eng.submit_raster(np.zeros((10, 10, 2), dtype=np.float32))
        eng.tick(0.2)
        assert eng.diagnostics.rasters_rejected == 1
        assert eng.stabilizer.current().shape == (100, 100, 4)
        eng.close()

    def test_rejected_raster_keeps_wall_class(self, camera, wall_surface, raster_factory):
        cfg = FusionConfig(stabilization=StabilizationConfig(resize_policy="reject"))
        eng = FusionEngine(cfg, camera_provider=lambda: camera)
        eng.submit_delta(TrackingDelta(added=[wall_surface]))
        eng.submit_raster(raster_factory(9))
        eng.tick(0.0)

        eng.submit_raster(np.zeros((10, 10, 2), dtype=np.float32), wall_class_id=42)
        eng.tick(0.2)
        assert eng.diagnostics.rasters_rejected == 1
        assert eng.classifier.config.wall_class_id == 9
        assert eng.record("wall").visible
        eng.close()

    def test_raster_wall_class_id_applied(self, engine, sample_coords, paint, wall_surface):
        raster = paint(sample_coords, 9, confidence=0.0, wall_class_id=42)
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(np.array(raster.data), wall_class_id=42)
        engine.tick(0.0)
        assert engine.classifier.config.wall_class_id == 42
        assert engine.record("wall").visible


class TestScenarios:
    def test_six_of_nine_is_wall(self, engine, wall_surface, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(6, confidence=0.8))
        result = engine.tick(0.0)

        verdict = result.verdicts["wall"]
        assert verdict.sampled_ratio == pytest.approx(0.667, abs=1e-3)
        assert verdict.is_wall
        record = engine.record("wall")
        assert record.visible
        assert record.opacity == pytest.approx(0.88)

    def test_four_of_nine_is_hidden(self, engine, wall_surface, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)
        assert engine.record("wall").visible

        engine.reset_stabilizer()
        engine.submit_raster(raster_factory(4, confidence=0.8))
        result = engine.tick(0.2)
        assert result.verdicts["wall"].sampled_ratio == pytest.approx(0.444, abs=1e-3)
        assert not result.verdicts["wall"].is_wall
        assert not engine.record("wall").visible
        assert engine.record("wall").opacity == 0.0

    def test_eviction_by_second_tick(self, engine, wall_surface, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)
        assert engine.record("wall").visible

        engine.submit_delta(TrackingDelta(removed=["wall"]))
        engine.tick(0.2)
        engine.tick(0.4)
        assert engine.record("wall") is None
        assert engine.records() == []

    def test_off_screen_grace_then_hidden(self, engine, wall_surface, wall_factory, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)

        # Surface moves fully off-screen: zero valid samples
        engine.submit_delta(TrackingDelta(updated=[wall_factory("wall", x=50.0)]))
        engine.tick(0.2)
        assert engine.record("wall").visible

        engine.tick(0.4)
        assert not engine.record("wall").visible

    def test_off_screen_grace_with_budget(self, camera, wall_factory, raster_factory):
        cfg = FusionConfig.model_validate({"classification": {"max_surfaces_per_tick": 1}})
        eng = FusionEngine(cfg, camera_provider=lambda: camera)
        eng.submit_delta(TrackingDelta(added=[wall_factory("a"), wall_factory("b")]))
        eng.submit_raster(raster_factory(9))
        eng.tick(0.0)
        eng.tick(0.2)
        assert eng.record("a").visible and eng.record("b").visible

        eng.submit_delta(TrackingDelta(updated=[wall_factory("a", x=50.0)]))
        eng.tick(0.4)
        assert eng.record("a").visible
        assert eng.record("a").missed_ticks == 1

        for i in range(3, 9):
            eng.tick(0.2 * i, force=True)
            assert not eng.record("a").visible
            assert eng.record("b").visible
        eng.close()

    def test_duplicate_add_still_applies_removals(self, engine, wall_factory, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_factory("a"), wall_factory("b")]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)

        engine.submit_delta(TrackingDelta(added=[wall_factory("a", z=4.0)], removed=["b"]))
        with pytest.raises(DuplicateSurfaceError):
            engine.tick(0.2)
        assert "b" not in engine.registry
        assert engine.registry.get("a").position[2] == 3.0

        engine.tick(0.4)
        assert engine.record("b") is None
        assert engine.record("a").visible

    def test_stopped_surface_removed(self, engine, wall_surface, wall_factory, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)
        engine.submit_delta(TrackingDelta(
            updated=[wall_factory("wall", tracking_state=TrackingState.STOPPED)],
        ))
        engine.tick(0.2)
        assert "wall" in engine.registry
        engine.tick(0.4)
        assert "wall" not in engine.registry
        assert engine.record("wall") is None

    def test_diagnostics(self, engine, wall_surface, wall_factory, raster_factory):
        from wallfuse.steps.s03_surface_registry.contracts import Alignment

        floor = wall_factory("floor", alignment=Alignment.HORIZONTAL)
        engine.submit_delta(TrackingDelta(added=[wall_surface, floor]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)
        diag = engine.diagnostics.to_dict()
        assert diag["total_surfaces"] == 2
        assert diag["vertical_surfaces"] == 1
        assert diag["wall_surfaces"] == 1
        assert diag["ticks_run"] == 1

    def test_runtime_color_and_opacity(self, engine, wall_surface, raster_factory):
        engine.submit_delta(TrackingDelta(added=[wall_surface]))
        engine.submit_raster(raster_factory(9))
        engine.tick(0.0)
        engine.set_wall_color((0.1, 0.2, 0.3))
        engine.set_wall_opacity(0.5)
        record = engine.record("wall")
        assert record.color == (0.1, 0.2, 0.3)
        assert record.opacity == pytest.approx(0.5)
