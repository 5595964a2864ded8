"""Read multi-page TIFF stacks into per-stain channel images."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

import SimpleITK as sitk

from fluoseg.config import ChannelSpec

LOGGER = logging.getLogger(__name__)


def read_stack(path: Path | str) -> sitk.Image:
    """Load a (multi-page) TIFF as a single SimpleITK image."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    stack = sitk.ReadImage(path.as_posix())
    LOGGER.info(
        "Loaded %s | size: %s | components: %d | spacing: %s",
        path.name,
        stack.GetSize(),
        stack.GetNumberOfComponentsPerPixel(),
        stack.GetSpacing(),
    )
    return stack


def extract_channel(stack: sitk.Image, index: int) -> sitk.Image:
    """Return channel ``index`` of ``stack`` as a 2D scalar image.

    Channels are either the slices of a 3D scalar stack (one page per stain)
    or the components of a 2D vector image (e.g. an RGB TIFF).
    """
    n_components = stack.GetNumberOfComponentsPerPixel()
    dim = stack.GetDimension()

    if n_components > 1:
        if dim != 2:
            raise ValueError(f"Multi-component stacks must be 2D, got {dim}D.")
        if not 0 <= index < n_components:
            raise IndexError(f"Channel {index} out of range for {n_components} components.")
        return sitk.VectorIndexSelectionCast(stack, index)

    if dim == 2:
        if index != 0:
            raise IndexError(f"Channel {index} out of range for a single-channel image.")
        return stack
    if dim == 3:
        n_slices = stack.GetSize()[2]
        if not 0 <= index < n_slices:
            raise IndexError(f"Channel {index} out of range for {n_slices} slices.")
        return stack[:, :, index]
    raise ValueError(f"Unsupported image dimension: {dim}")


def load_channels(
    path: Path | str,
    channels: Iterable[ChannelSpec],
    spacing: Sequence[float] | None = None,
) -> dict[str, sitk.Image]:
    """Read ``path`` and split it into one 2D image per configured stain."""
    stack = read_stack(path)
    images = {}
    for spec in channels:
        image = extract_channel(stack, spec.index)
        if spacing is not None:
            image = sitk.Image(image)
            image.SetSpacing(tuple(float(s) for s in spacing))
        images[spec.stain] = image
    return images


def write_label_image(image: sitk.Image, path: Path | str) -> Path:
    """Write a mask or label image as ``uint16``."""
    min_max = sitk.MinimumMaximumImageFilter()
    min_max.Execute(image)
    if min_max.GetMaximum() > 65535 or min_max.GetMinimum() < 0:
        raise ValueError(
            f"Label values [{min_max.GetMinimum():g}, {min_max.GetMaximum():g}] do not fit in uint16."
        )
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sitk.WriteImage(sitk.Cast(image, sitk.sitkUInt16), path.as_posix())
    return path


__all__ = ["read_stack", "extract_channel", "load_channels", "write_label_image"]
