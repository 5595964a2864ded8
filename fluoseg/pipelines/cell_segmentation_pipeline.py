"""End-to-end segmentation of a multi-stain fluorescence image.

The pipeline segments every stain independently, then uses the reliable
nuclear stain (DAPI by default) to clean up the sparser proliferation
markers (Ph3, Ki67) before measuring cell shapes. Each output stage can be
toggled so callers may, e.g., skip writing images in batch runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import SimpleITK as sitk
from tqdm import tqdm

from fluoseg.config import PipelineConfig, save_config
from fluoseg.data_io.tiff_io import load_channels, write_label_image
from fluoseg.qc.border import filter_border_cells, remove_border_labels
from fluoseg.segmentation.refinement import label_refined_mask, refine_channel_mask
from fluoseg.segmentation.thresholding import ChannelSegmentation, segment_channel
from fluoseg.stats.shape_stats import combine_stats, compute_shape_stats, summarize_by_stain
from fluoseg.visualization.plots import (
    make_composite,
    make_label_overlay,
    plot_area_histogram,
    save_rgb,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineResult:
    """Return object describing everything produced by the pipeline."""

    channels: dict[str, ChannelSegmentation]
    refined: dict[str, sitk.Image]
    label_images: dict[str, sitk.Image]
    stats: pd.DataFrame
    summary: pd.DataFrame
    outputs: dict[str, Path] = field(default_factory=dict)


def segment_all_channels(
    images: dict[str, sitk.Image],
    config: PipelineConfig,
) -> dict[str, ChannelSegmentation]:
    segmentations = {}
    for stain, image in tqdm(images.items(), desc="Segmenting channels..."):
        segmentations[stain] = segment_channel(
            image,
            threshold_config=config.threshold,
            split_config=config.split,
            stain=stain,
        )
    return segmentations


def build_label_images(
    segmentations: dict[str, ChannelSegmentation],
    config: PipelineConfig,
    run_refinement: bool = True,
) -> tuple[dict[str, sitk.Image], dict[str, sitk.Image]]:
    """Return (refined masks, label images) keyed by stain.

    The reliable stain keeps its watershed labels. Every other stain is
    reconstructed inside the reliable cells, unless ``run_refinement`` is
    off, in which case its own watershed labels are used as-is.
    """
    reference = config.reference_stain
    reference_labels = segmentations[reference].labels

    refined = {}
    label_images = {reference: reference_labels}
    for stain, seg in segmentations.items():
        if stain == reference:
            continue
        if not run_refinement:
            label_images[stain] = seg.labels
            continue
        refined[stain] = refine_channel_mask(
            reference_labels, seg.mask, fully_connected=config.refinement.fully_connected
        )
        label_images[stain] = label_refined_mask(
            refined[stain],
            reference_labels=reference_labels if config.refinement.inherit_reference_labels else None,
            fully_connected=config.refinement.fully_connected,
        )
    return refined, label_images


def tabulate(
    label_images: dict[str, sitk.Image],
    order: list[str],
    exclude_border_cells: bool = True,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Measure every label image and return (stats, per-stain summary)."""
    tables = [compute_shape_stats(label_images[stain], stain=stain) for stain in order]
    stats = combine_stats(tables, order=order)
    n_total = len(stats)
    if exclude_border_cells:
        stats = filter_border_cells(stats)
        LOGGER.info("Border filter kept %d of %d cells", len(stats), n_total)
    return stats, summarize_by_stain(stats)


def write_outputs(
    out_dir: Path,
    images: dict[str, sitk.Image],
    result: PipelineResult,
    config: PipelineConfig,
    write_images: bool = True,
    write_plots: bool = True,
) -> dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    outputs = {
        "config": save_config(config, out_dir / "config.yaml"),
        "stats": out_dir / "cell_stats.csv",
        "summary": out_dir / "stain_summary.csv",
    }
    result.stats.to_csv(outputs["stats"], index=False)
    result.summary.to_csv(outputs["summary"], index=False)

    if write_images:
        for stain, labels in result.label_images.items():
            outputs[f"{stain}_labels"] = write_label_image(labels, out_dir / f"{stain}_labels.tif")

    if write_plots:
        # first three configured channels map to red, green, blue
        rgb_stains = [spec.stain for spec in config.channels][:3]
        if len(rgb_stains) == 3:
            composite = make_composite(*(images[stain] for stain in rgb_stains))
            outputs["composite"] = save_rgb(composite, out_dir / "composite.png")
        else:
            LOGGER.warning("Skipping composite: need 3 channels, got %d", len(rgb_stains))
        for stain, labels in result.label_images.items():
            if config.stats.exclude_border_cells:
                labels, _ = remove_border_labels(labels)
            overlay = make_label_overlay(images[stain], labels)
            outputs[f"{stain}_overlay"] = save_rgb(overlay, out_dir / f"{stain}_overlay.png")

        fig = plot_area_histogram(result.stats, bins=config.stats.histogram_bins)
        outputs["histogram"] = out_dir / "area_histogram.png"
        fig.savefig(outputs["histogram"], dpi=150)
        plt.close(fig)

    return outputs


def run_cell_segmentation_pipeline(
    image_path: Path | str,
    config: PipelineConfig | None = None,
    out_dir: Path | str | None = None,
    *,
    run_refinement: bool = True,
    write_images: bool = True,
    write_plots: bool = True,
) -> PipelineResult:
    """Execute the full segmentation workflow for one image.

    Parameters
    ----------
    image_path:
        Multi-page TIFF with one page (or RGB component) per stain.
    config:
        Pipeline parameters; defaults to :class:`PipelineConfig`.
    out_dir:
        If given, tables, label images and figures are written here.
    run_refinement:
        Reconstruct unreliable stains inside the reliable stain's cells.
    write_images, write_plots:
        Toggle label TIFFs and PNG figures when ``out_dir`` is set.
    """
    if config is None:
        config = PipelineConfig()
    config.validate()

    LOGGER.info("=== Cell segmentation pipeline ===")
    LOGGER.info("Image: %s", image_path)
    LOGGER.info("Stains: %s (reference: %s)", [c.stain for c in config.channels], config.reference_stain)

    images = load_channels(image_path, config.channels, spacing=config.spacing)

    LOGGER.info("[1/3] Segmenting channels")
    segmentations = segment_all_channels(images, config)

    LOGGER.info("[2/3] Refining channels against %s", config.reference_stain)
    refined, label_images = build_label_images(segmentations, config, run_refinement=run_refinement)

    LOGGER.info("[3/3] Measuring cells")
    order = [spec.stain for spec in config.channels]
    stats, summary = tabulate(label_images, order, exclude_border_cells=config.stats.exclude_border_cells)

    result = PipelineResult(
        channels=segmentations,
        refined=refined,
        label_images=label_images,
        stats=stats,
        summary=summary,
    )

    if out_dir is not None:
        result.outputs = write_outputs(
            Path(out_dir), images, result, config, write_images=write_images, write_plots=write_plots
        )
        LOGGER.info("Wrote %d outputs to %s", len(result.outputs), out_dir)

    LOGGER.info("Pipeline completed.")
    return result


__all__ = [
    "PipelineResult",
    "segment_all_channels",
    "build_label_images",
    "tabulate",
    "write_outputs",
    "run_cell_segmentation_pipeline",
]
