"""I/O utilities: raster files, JSON and YAML documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from wallfuse.core.errors import RasterShapeError

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff"}


# ── Rasters ──────────────────────────────────────────────────────────

def load_raster_array(path: Path) -> np.ndarray:
    """Read a raster as an (H, W, C) array.

    ``.npy`` files are returned as stored (float 0..1 or uint8 0..255).
    Images are read with OpenCV and converted to RGB, so the red channel is
    the class channel and green the confidence channel.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        return np.load(path)
    if suffix in IMAGE_SUFFIXES:
        import cv2

        bgr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if bgr is None:
            raise RasterShapeError(f"Could not decode image: {path}")
        if bgr.ndim == 2:
            return bgr
        code = cv2.COLOR_BGRA2RGBA if bgr.shape[2] == 4 else cv2.COLOR_BGR2RGB
        return cv2.cvtColor(bgr, code)
    raise ValueError(f"Unsupported raster format '{suffix}' ({path})")


def save_raster_image(path: Path, data: np.ndarray) -> None:
    """Write a 0..1 float raster as an 8-bit RGB image (class → R, confidence → G)."""
    import cv2

    rgb = np.zeros((*data.shape[:2], 3), dtype=np.uint8)
    channels = min(data.shape[2], 3)
    rgb[:, :, :channels] = np.clip(np.rint(data[:, :, :channels] * 255), 0, 255).astype(np.uint8)
    cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))


# ── Documents ────────────────────────────────────────────────────────

def read_document(path: Path) -> Any:
    """Load a JSON or YAML file (by suffix)."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def write_json(path: Path, data: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

