"""Boundary-touch QC for cell statistics tables."""
from __future__ import annotations

import numpy as np
import pandas as pd
import SimpleITK as sitk


def filter_border_cells(stats: pd.DataFrame, border_col: str = "on_border") -> pd.DataFrame:
    """Drop rows for cells that touch the image boundary.

    Cells cut by the field of view have truncated areas, so they are
    excluded before area distributions are compared.
    """
    keep = stats[border_col] == 0
    return stats.loc[keep].reset_index(drop=True)


def remove_border_labels(label_image: sitk.Image) -> tuple[sitk.Image, np.ndarray]:
    """Zero out labels that touch the image boundary.

    Returns the filtered label image and the ids that were kept.
    """
    arr = sitk.GetArrayFromImage(label_image)
    edge = np.zeros(arr.shape, dtype=bool)
    edge[0, :] = edge[-1, :] = True
    edge[:, 0] = edge[:, -1] = True

    border_ids = np.unique(arr[edge])
    all_ids = np.unique(arr)
    keep = all_ids[(all_ids > 0) & ~np.isin(all_ids, border_ids)]

    filtered = np.where(np.isin(arr, keep), arr, 0).astype(arr.dtype, copy=False)
    out = sitk.GetImageFromArray(filtered)
    out.CopyInformation(label_image)
    return out, keep


__all__ = ["filter_border_cells", "remove_border_labels"]
