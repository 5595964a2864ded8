"""Static figures for segmentation results: composites, overlays, histograms."""
from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import SimpleITK as sitk
import skimage as ski
from matplotlib.figure import Figure


def _to_unit_range(image: sitk.Image | np.ndarray) -> np.ndarray:
    arr = sitk.GetArrayFromImage(image) if isinstance(image, sitk.Image) else np.asarray(image)
    arr = arr.astype(np.float32)
    if arr.max() == arr.min():
        return np.zeros_like(arr)
    return ski.exposure.rescale_intensity(arr, out_range=(0.0, 1.0))


def make_composite(red, green, blue) -> np.ndarray:
    """Stack three channels into an RGB ``uint8`` array, each rescaled to full range."""
    rgb = np.stack([_to_unit_range(ch) for ch in (red, green, blue)], axis=-1)
    return ski.util.img_as_ubyte(np.clip(rgb, 0, 1))


def make_label_overlay(image, labels, alpha: float = 0.35) -> np.ndarray:
    """Blend label colours over a grey-scale intensity image."""
    lab = sitk.GetArrayFromImage(labels) if isinstance(labels, sitk.Image) else np.asarray(labels)
    overlay = ski.color.label2rgb(
        lab.astype(np.int64), image=_to_unit_range(image), bg_label=0, alpha=alpha, image_alpha=1
    )
    boundaries = ski.segmentation.find_boundaries(lab, mode="inner")
    overlay[boundaries] = (1.0, 1.0, 0.0)
    return ski.util.img_as_ubyte(np.clip(overlay, 0, 1))


def save_rgb(array: np.ndarray, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ski.io.imsave(path.as_posix(), array, check_contrast=False)
    return path


def plot_area_histogram(
    stats: pd.DataFrame,
    bins: int = 30,
    ax: plt.Axes | None = None,
    area_col: str = "area",
) -> Figure:
    """Overlay per-stain histograms of cell area on shared bins."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 4))
    else:
        fig = ax.figure

    areas = stats[area_col].to_numpy(dtype=float)
    if areas.size:
        edges = np.histogram_bin_edges(areas, bins=bins)
        for stain, df in stats.groupby("stain", observed=True):
            ax.hist(df[area_col], bins=edges, alpha=0.5, label=str(stain))
        ax.legend(title="Stain")

    ax.set_xlabel("Area")
    ax.set_ylabel("Cell count")
    ax.set_title(f"Cell areas (n={len(stats)})")
    fig.tight_layout()
    return fig


__all__ = ["make_composite", "make_label_overlay", "save_rgb", "plot_area_histogram"]
