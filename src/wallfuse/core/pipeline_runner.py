"""Session replay: loads fusion config and a recorded session, runs ticks in order."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, Field, model_validator

from wallfuse.steps.s03_surface_registry.contracts import (
    Alignment,
    Surface,
    TrackingDelta,
    TrackingState,
)
from wallfuse.utils.io import load_raster_array, read_document, write_json
from .contracts import CameraIntrinsics, CameraPose, CameraState, FusionConfig
from .engine import FusionEngine

logger = logging.getLogger(__name__)

# Flat, camelCase setting names → (section, field)
FLAT_KEYS: dict[str, tuple[Optional[str], str]] = {
    "updateInterval": (None, "update_interval"),
    "enableStabilization": ("stabilization", "enable_stabilization"),
    "stabilizationFrameCount": ("stabilization", "stabilization_frame_count"),
    "stabilizationDecay": ("stabilization", "stabilization_decay"),
    "verticalThreshold": ("classification", "vertical_threshold"),
    "wallConfidenceThreshold": ("classification", "wall_confidence_threshold"),
    "classMatchTolerance": ("classification", "class_match_tolerance"),
    "wallClassId": ("classification", "wall_class_id"),
    "maxSurfacesPerTick": ("classification", "max_surfaces_per_tick"),
    "minSurfaceArea": ("classification", "min_surface_area"),
    "baseOpacity": ("visibility", "base_opacity"),
    "opacityOverride": ("visibility", "opacity_override"),
    "wallColor": ("visibility", "wall_color"),
    "showAllSurfaces": ("visibility", "show_all_surfaces"),
}

SECTIONS = ("stabilization", "projection", "classification", "visibility")


def _route_flat_keys(raw: dict[str, Any]) -> dict[str, Any]:
    """Move flat keys (camelCase or bare field names) into their sections."""
    routed: dict[str, Any] = {k: dict(raw.get(k) or {}) for k in SECTIONS}
    section_fields = {
        name: set(FusionConfig.model_fields[name].annotation.model_fields) for name in SECTIONS
    }
    for key, value in raw.items():
        if key in SECTIONS:
            continue
        if key in FusionConfig.model_fields:
            routed[key] = value
            continue
        if key in FLAT_KEYS:
            section, field_name = FLAT_KEYS[key]
        else:
            section = next((s for s in SECTIONS if key in section_fields[s]), None)
            field_name = key
            if section is None:
                logger.warning(f"Ignoring unknown config key '{key}'")
                continue
        if section is None:
            routed[field_name] = value
        else:
            routed[section][field_name] = value
    return routed


def load_fusion_config(config_path: Path | None = None) -> FusionConfig:
    """Load and validate a fusion config YAML (defaults when no path is given)."""
    if config_path is None:
        return FusionConfig()
    raw = read_document(Path(config_path)) or {}
    return fusion_config_from_dict(raw)


def fusion_config_from_dict(raw: dict[str, Any]) -> FusionConfig:
    return FusionConfig(**_route_flat_keys(raw))


# ── Session file models ──────────────────────────────────────────────

class RasterSpec(BaseModel):
    """A raster given as a file path or as an inline flat buffer."""

    path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    channels: int = 4
    data: Optional[list[float]] = None
    wall_class_id: Optional[int] = Field(None, ge=0, le=255)

    @model_validator(mode="after")
    def _path_or_data(self) -> RasterSpec:
        if (self.path is None) == (self.data is None):
            raise ValueError("raster needs exactly one of 'path' or 'data'")
        if self.data is not None and (self.width is None or self.height is None):
            raise ValueError("inline raster data needs 'width' and 'height'")
        return self

    def resolve(self, base_dir: Path) -> np.ndarray | tuple[int, int, np.ndarray, int]:
        if self.path is not None:
            path = Path(self.path)
            return load_raster_array(path if path.is_absolute() else base_dir / path)
        return self.width, self.height, np.asarray(self.data, dtype=np.float32), self.channels


class SurfaceSpec(BaseModel):
    id: str
    position: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    rotation: list[float] = Field(default_factory=lambda: [1.0, 0.0, 0.0, 0.0])
    boundary: list[list[float]] = Field(default_factory=list)
    local_bounds: Optional[list[list[float]]] = None
    normal: Optional[list[float]] = None
    alignment: Alignment = Alignment.UNKNOWN
    tracking_state: TrackingState = TrackingState.TRACKING
    subsumed_by: Optional[str] = None

    def to_surface(self) -> Surface:
        bounds = None
        if self.local_bounds is not None:
            bounds = (np.array(self.local_bounds[0]), np.array(self.local_bounds[1]))
        return Surface(
            id=self.id,
            position=np.array(self.position),
            rotation=np.array(self.rotation),
            boundary=np.array(self.boundary, dtype=np.float64).reshape(-1, 2),
            local_bounds=bounds,
            normal=None if self.normal is None else np.array(self.normal),
            alignment=self.alignment,
            tracking_state=self.tracking_state,
            subsumed_by=self.subsumed_by,
        )


class DeltaSpec(BaseModel):
    added: list[SurfaceSpec] = Field(default_factory=list)
    updated: list[SurfaceSpec] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    def to_delta(self) -> TrackingDelta:
        return TrackingDelta(
            added=[s.to_surface() for s in self.added],
            updated=[s.to_surface() for s in self.updated],
            removed=list(self.removed),
        )


class TickSpec(BaseModel):
    time: float
    camera: Optional[CameraPose] = None
    raster: Optional[RasterSpec] = None
    delta: Optional[DeltaSpec] = None


class SessionFile(BaseModel):
    viewport: tuple[int, int] = (1920, 1080)
    intrinsics: Optional[CameraIntrinsics] = None
    fov_y: float = Field(60.0, gt=0, lt=180, description="Vertical FOV (deg) when intrinsics are absent")
    wall_class_id: Optional[int] = Field(None, ge=0, le=255)
    ticks: list[TickSpec] = Field(default_factory=list)

    def camera_intrinsics(self) -> CameraIntrinsics:
        if self.intrinsics is not None:
            return self.intrinsics
        return CameraIntrinsics.from_fov(self.fov_y, *self.viewport)


def load_session(session_path: Path) -> SessionFile:
    """Load and validate a recorded session (JSON or YAML)."""
    raw = read_document(Path(session_path)) or {}
    return SessionFile(**raw)


# ── Replay ───────────────────────────────────────────────────────────

class ReplayCamera:
    """Camera provider that returns the most recent pose seen in the session."""

    def __init__(self, intrinsics: CameraIntrinsics):
        self.intrinsics = intrinsics
        self.state: CameraState | None = None

    def update(self, pose: CameraPose) -> None:
        self.state = CameraState(pose=pose, intrinsics=self.intrinsics)

    def __call__(self) -> CameraState | None:
        return self.state


def build_engine(session: SessionFile, config: FusionConfig) -> tuple[FusionEngine, ReplayCamera]:
    camera = ReplayCamera(session.camera_intrinsics())
    # Session timestamps drive the interval gate
    engine = FusionEngine(config, camera_provider=camera, clock=lambda: 0.0)
    if session.wall_class_id is not None:
        engine.set_wall_class_id(session.wall_class_id)
    return engine, camera


def feed_tick(engine: FusionEngine, camera: ReplayCamera, tick: TickSpec, base_dir: Path) -> None:
    """Hand one recorded tick's inputs to the engine without running it."""
    if tick.camera is not None:
        camera.update(tick.camera)
    if tick.delta is not None:
        engine.submit_delta(tick.delta.to_delta())
    if tick.raster is None:
        return
    source = tick.raster.resolve(base_dir)
    if isinstance(source, tuple):
        width, height, buffer, channels = source
        engine.submit_raster_buffer(
            width, height, buffer, channels=channels, wall_class_id=tick.raster.wall_class_id,
        )
    else:
        engine.submit_raster(source, wall_class_id=tick.raster.wall_class_id)


def run_session(
    session_path: Path,
    config: FusionConfig | None = None,
    output_path: Path | None = None,
) -> dict[str, Any]:
    """Replay a session file tick by tick and return per-tick results."""
    session_path = Path(session_path)
    config = config or FusionConfig()
    session = load_session(session_path)
    engine, camera = build_engine(session, config)

    logger.info(f"Replaying '{session_path.name}': {len(session.ticks)} ticks")
    ticks: list[dict[str, Any]] = []
    try:
        for tick in session.ticks:
            feed_tick(engine, camera, tick, session_path.parent)
            result = engine.tick(tick.time)
            if result is not None:
                ticks.append(result.to_dict())
        diagnostics = engine.diagnostics.to_dict()
    finally:
        engine.close()

    logger.info(
        f"Replay complete: {diagnostics['ticks_run']} ticks run, "
        f"{diagnostics['ticks_skipped']} skipped, {diagnostics['wall_surfaces']} walls visible"
    )
    report = {"session": str(session_path), "ticks": ticks, "diagnostics": diagnostics}
    if output_path is not None:
        write_json(output_path, report)
        logger.info(f"Wrote replay report to {output_path}")
    return report


def replay_to_tick(
    session_path: Path, tick_index: int, config: FusionConfig | None = None,
) -> tuple[FusionEngine, ReplayCamera]:
    """Replay ticks 0..tick_index and return the live engine for inspection."""
    session_path = Path(session_path)
    session = load_session(session_path)
    if not 0 <= tick_index < len(session.ticks):
        raise IndexError(f"Tick {tick_index} out of range (session has {len(session.ticks)})")
    engine, camera = build_engine(session, config or FusionConfig())
    for tick in session.ticks[: tick_index + 1]:
        feed_tick(engine, camera, tick, session_path.parent)
        engine.tick(tick.time, force=True)
    return engine, camera
