"""Visualization utilities for fusion debugging."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np

from wallfuse.steps.s01_segmentation_raster.contracts import CLASS_CHANNEL, CONFIDENCE_CHANNEL


def plot_raster_samples(
    raster: np.ndarray,
    samples: dict[str, list[Optional[tuple[int, int]]]],
    walls: set[str] | None = None,
    title: str = "Raster Samples",
    save_path: Path | None = None,
):
    """Plot class and confidence channels with projected sample points.

    ``samples`` maps surface id → raster coordinates (None = off-screen).
    Surfaces in ``walls`` are drawn in blue, the rest in orange.
    """
    import matplotlib.pyplot as plt

    walls = walls or set()
    fig, axes = plt.subplots(1, 2, figsize=(14, 6))
    panels = [
        (axes[0], raster[:, :, CLASS_CHANNEL], "Class channel"),
        (axes[1], raster[:, :, CONFIDENCE_CHANNEL], "Confidence channel"),
    ]
    for ax, channel, label in panels:
        im = ax.imshow(channel, cmap="viridis")
        ax.set_title(label)
        fig.colorbar(im, ax=ax, fraction=0.046)
        for surface_id, coords in samples.items():
            pts = np.array([c for c in coords if c is not None])
            if len(pts) == 0:
                continue
            color = "tab:blue" if surface_id in walls else "tab:orange"
            ax.scatter(pts[:, 0], pts[:, 1], s=18, c=color, edgecolors="white", linewidths=0.5)
            ax.annotate(surface_id, pts.mean(axis=0), color=color, fontsize=8)

    fig.suptitle(title)
    if save_path:
        fig.savefig(str(save_path), dpi=150, bbox_inches="tight")
    else:
        plt.show()
    plt.close(fig)
    return fig
