import pytest

np = pytest.importorskip("numpy")
sitk = pytest.importorskip("SimpleITK")

from helper_functions import CENTERS, SHAPE, disc


@pytest.fixture
def stain_arrays():
    """Three float channels (ph3, ki67, dapi) with low-level noise."""
    rng = np.random.default_rng(0)

    def background():
        return 10.0 + rng.normal(0.0, 1.0, SHAPE)

    dapi = background()
    for center in CENTERS.values():
        dapi[disc(SHAPE, center, 9)] = 200.0

    ph3 = background()
    ph3[disc(SHAPE, CENTERS["a"], 5)] = 180.0

    ki67 = background()
    for key in ("b", "c"):
        ki67[disc(SHAPE, CENTERS[key], 6)] = 150.0

    return {"ph3": ph3, "ki67": ki67, "dapi": dapi}


@pytest.fixture
def stack_path(tmp_path, stain_arrays):
    """Three-page uint8 TIFF: page 0 = ph3, 1 = ki67, 2 = dapi."""
    pages = np.stack([stain_arrays[s] for s in ("ph3", "ki67", "dapi")], axis=0)
    pages = np.clip(pages, 0, 255).astype(np.uint8)
    path = tmp_path / "cells.tif"
    sitk.WriteImage(sitk.GetImageFromArray(pages), path.as_posix())
    return path
