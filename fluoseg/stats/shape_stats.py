"""Shape statistics tables for labelled cell images."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np
import pandas as pd
import SimpleITK as sitk

LOGGER = logging.getLogger(__name__)

STAT_COLUMNS = [
    "label",
    "area",
    "n_pixels",
    "on_border",
    "centroid_x",
    "centroid_y",
    "perimeter",
    "elongation",
]
STAT_DTYPES = {
    "label": np.int64,
    "area": np.float64,
    "n_pixels": np.int64,
    "on_border": np.int64,
    "centroid_x": np.float64,
    "centroid_y": np.float64,
    "perimeter": np.float64,
    "elongation": np.float64,
}


def compute_shape_stats(label_image: sitk.Image, stain: str | None = None) -> pd.DataFrame:
    """Return one row of shape measurements per label in ``label_image``.

    Parameters
    ----------
    label_image : sitk.Image
        Integer-labelled 2D image with background encoded as ``0``. Only 2D
        images are measured; other dimensions raise ``ValueError``.
    stain : str, optional
        Value written to the ``stain`` column.

    Returns
    -------
    pd.DataFrame
        Columns ``label``, ``area`` (physical units), ``n_pixels``,
        ``on_border`` (number of label pixels on the image boundary),
        ``centroid_x``/``centroid_y`` (physical coordinates), ``perimeter``,
        ``elongation`` and, if given, ``stain``. Rows are sorted by label.
    """
    if label_image.GetDimension() != 2:
        raise ValueError(f"Expected a 2D label image, got {label_image.GetDimension()}D.")

    shape_filter = sitk.LabelShapeStatisticsImageFilter()
    shape_filter.ComputePerimeterOn()
    shape_filter.Execute(sitk.Cast(label_image, sitk.sitkUInt32))

    rows = []
    for lb in sorted(shape_filter.GetLabels()):
        cx, cy = shape_filter.GetCentroid(lb)
        rows.append(
            {
                "label": int(lb),
                "area": shape_filter.GetPhysicalSize(lb),
                "n_pixels": int(shape_filter.GetNumberOfPixels(lb)),
                "on_border": int(shape_filter.GetNumberOfPixelsOnBorder(lb)),
                "centroid_x": cx,
                "centroid_y": cy,
                "perimeter": shape_filter.GetPerimeter(lb),
                "elongation": shape_filter.GetElongation(lb),
            }
        )

    stats = pd.DataFrame(rows, columns=STAT_COLUMNS).astype(STAT_DTYPES)
    if stain is not None:
        stats["stain"] = stain
    return stats


def combine_stats(
    tables: Iterable[pd.DataFrame],
    order: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Concatenate per-stain tables; ``stain`` becomes a categorical column.

    Categories follow ``order`` when given, which keeps stains without any
    cells in the table's categories. Otherwise they follow first appearance.
    A stain present in the tables but missing from ``order`` raises
    ``ValueError``.
    """
    tables = list(tables)
    for df in tables:
        if "stain" not in df.columns:
            raise ValueError("Every table needs a 'stain' column before combining.")

    if order is None:
        order = []
        for df in tables:
            order.extend(s for s in pd.unique(df["stain"]) if s not in order)
    else:
        order = list(order)
        unknown = {s for df in tables for s in pd.unique(df["stain"])} - set(order)
        if unknown:
            raise ValueError(f"Stains {sorted(map(str, unknown))} are not listed in order={order}.")

    non_empty = [df for df in tables if len(df)]
    if non_empty:
        combined = pd.concat(non_empty, axis=0, ignore_index=True)
    else:
        combined = pd.DataFrame(columns=STAT_COLUMNS + ["stain"]).astype(STAT_DTYPES)
    combined["stain"] = pd.Categorical(combined["stain"], categories=list(order))
    return combined


def summarize_by_stain(stats: pd.DataFrame) -> pd.DataFrame:
    """Per-stain cell counts and area summaries."""
    summary = (
        stats.groupby("stain", observed=False)["area"]
        .agg(n_cells="count", mean_area="mean", median_area="median", total_area="sum")
        .reset_index()
    )
    summary["n_cells"] = summary["n_cells"].astype(np.int64)
    return summary


def stain_fractions(stats: pd.DataFrame, reference: str = "dapi") -> pd.Series:
    """Cell count of every stain relative to the ``reference`` stain."""
    counts = stats.groupby("stain", observed=False).size()
    if reference not in counts.index:
        raise KeyError(f"Reference stain '{reference}' not present in stats.")
    n_ref = counts[reference]
    if n_ref == 0:
        LOGGER.warning("No '%s' cells found; fractions are undefined.", reference)
        return pd.Series(np.nan, index=counts.index, name="fraction")
    return (counts / n_ref).rename("fraction")


__all__ = [
    "STAT_COLUMNS",
    "compute_shape_stats",
    "combine_stats",
    "summarize_by_stain",
    "stain_fractions",
]
