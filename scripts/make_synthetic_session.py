"""Create a synthetic room session (rasters + tracking deltas) for replay testing.

The camera stands in the middle of a 6x6 m room and pans across the front
wall. Rasters mark the wall class wherever a wall is visible, with random
per-frame dropouts so temporal stabilization has flicker to suppress.
"""

from pathlib import Path
import sys

import numpy as np

from wallfuse.core.contracts import CameraIntrinsics
from wallfuse.steps.s01_segmentation_raster.contracts import normalize_class_id
from wallfuse.utils.geometry import UP, look_at_rotation, rotmat2qvec
from wallfuse.utils.io import write_json

WALL_CLASS_ID = 9
FLOOR_CLASS_ID = 3
UNLABELED_CLASS_ID = 255
VIEWPORT = (160, 120)
RASTER_SIZE = (80, 60)

# (id, position, inward normal); floor keeps the identity rotation
ROOM = [
    ("wall_front", [0.0, 1.5, 3.0], [0.0, 0.0, -1.0]),
    ("wall_left", [-3.0, 1.5, 0.0], [1.0, 0.0, 0.0]),
    ("wall_right", [3.0, 1.5, 0.0], [-1.0, 0.0, 0.0]),
    ("floor", [0.0, 0.0, 0.0], [0.0, 1.0, 0.0]),
]


def plane_rotation(normal: list[float]) -> list[float]:
    """Quaternion taking local +Y to normal, with local +Z pointing up for walls."""
    n = np.asarray(normal, dtype=np.float64)
    if abs(n @ UP) > 0.99:
        return [1.0, 0.0, 0.0, 0.0]
    R = np.column_stack([np.cross(n, UP), n, UP])
    return rotmat2qvec(R).tolist()


def surface_spec(surface_id: str, position: list[float], normal: list[float]) -> dict:
    half = 3.0 if surface_id == "floor" else 1.5
    return {
        "id": surface_id,
        "position": position,
        "rotation": plane_rotation(normal),
        "boundary": [[-3.0, -half], [3.0, -half], [3.0, half], [-3.0, half]],
        "alignment": "horizontal" if surface_id == "floor" else "vertical",
    }


def make_raster(rng: np.random.Generator, horizon: int, dropout: float) -> np.ndarray:
    """Wall class above the horizon row, floor below; random dropouts to unlabeled."""
    w, h = RASTER_SIZE
    raster = np.zeros((h, w, 4), dtype=np.float32)
    raster[:horizon, :, 0] = normalize_class_id(WALL_CLASS_ID)
    raster[:horizon, :, 1] = rng.uniform(0.6, 0.95, size=(horizon, w))
    raster[horizon:, :, 0] = normalize_class_id(FLOOR_CLASS_ID)
    raster[horizon:, :, 1] = rng.uniform(0.0, 0.2, size=(h - horizon, w))
    drop = rng.random((h, w)) < dropout
    raster[drop, 0] = normalize_class_id(UNLABELED_CLASS_ID)
    raster[drop, 1] = 0.0
    raster[:, :, 3] = 1.0
    return raster


def create_session(output_dir: Path, num_ticks: int = 20, seed: int = 0) -> Path:
    """Write session.json and one .npy raster per tick. Returns the session path."""
    rng = np.random.default_rng(seed)
    output_dir.mkdir(parents=True, exist_ok=True)
    eye = np.array([0.0, 1.5, 0.0])

    ticks = []
    for i in range(num_ticks):
        yaw = np.radians(-40.0 + 80.0 * i / max(num_ticks - 1, 1))
        target = eye + np.array([np.sin(yaw), -0.1, np.cos(yaw)])
        qvec = rotmat2qvec(look_at_rotation(eye, target))

        raster_name = f"raster_{i:04d}.npy"
        np.save(output_dir / raster_name, make_raster(rng, horizon=40, dropout=0.15))

        tick = {
            "time": round(0.2 * i, 3),
            "camera": {"position": eye.tolist(), "rotation": qvec.tolist()},
            "raster": {"path": raster_name},
        }
        if i == 0:
            tick["delta"] = {"added": [surface_spec(*s) for s in ROOM]}
        ticks.append(tick)

    intrinsics = CameraIntrinsics.from_fov(60.0, *VIEWPORT)
    session = {
        "viewport": list(VIEWPORT),
        "intrinsics": intrinsics.model_dump(),
        "wall_class_id": WALL_CLASS_ID,
        "ticks": ticks,
    }
    session_path = output_dir / "session.json"
    write_json(session_path, session)
    print(f"Created {session_path}: {num_ticks} ticks, raster {RASTER_SIZE[0]}x{RASTER_SIZE[1]}")
    return session_path


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data/synthetic_room")
    n = int(sys.argv[2]) if len(sys.argv) > 2 else 20
    create_session(out, num_ticks=n)
