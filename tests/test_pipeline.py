import logging

import pytest

np = pytest.importorskip("numpy")
pd = pytest.importorskip("pandas")
sitk = pytest.importorskip("SimpleITK")
matplotlib = pytest.importorskip("matplotlib")
matplotlib.use("Agg")

from fluoseg.config import ChannelSpec, PipelineConfig, SplitConfig
from fluoseg.pipelines.cell_segmentation_pipeline import run_cell_segmentation_pipeline
from helper_functions import CENTERS


def _config(**kwargs):
    return PipelineConfig(split=SplitConfig(distance_sigma=1.0), **kwargs)


def test_pipeline_tables_and_refinement(stack_path):
    result = run_cell_segmentation_pipeline(stack_path, _config())

    assert set(result.channels) == {"ph3", "ki67", "dapi"}
    assert set(result.refined) == {"ph3", "ki67"}
    assert list(result.stats["stain"].cat.categories) == ["ph3", "ki67", "dapi"]
    assert (result.stats["on_border"] == 0).all()

    dapi_fg = sitk.GetArrayFromImage(result.label_images["dapi"]) != 0
    for stain in ("ph3", "ki67"):
        refined = sitk.GetArrayFromImage(result.refined[stain])
        assert not np.any(refined[~dapi_fg])

    ph3 = sitk.GetArrayFromImage(result.refined["ph3"])
    assert ph3[CENTERS["a"]] == 1
    assert ph3[CENTERS["b"]] == 0

    summary = result.summary.set_index("stain")
    assert summary.loc["ph3", "n_cells"] >= 1
    assert summary.loc["ph3", "n_cells"] <= summary.loc["dapi", "n_cells"]
    assert summary.loc["ki67", "n_cells"] <= summary.loc["dapi", "n_cells"]
    assert result.outputs == {}


def test_border_filter_reduces_or_preserves_rows(stack_path):
    kept = run_cell_segmentation_pipeline(stack_path, _config())
    config = _config()
    config.stats.exclude_border_cells = False
    everything = run_cell_segmentation_pipeline(stack_path, config)

    assert len(kept.stats) <= len(everything.stats)
    assert (everything.stats["on_border"] > 0).any()


def test_pipeline_without_refinement(stack_path):
    result = run_cell_segmentation_pipeline(stack_path, _config(), run_refinement=False)
    assert result.refined == {}
    assert result.label_images["ph3"] is result.channels["ph3"].labels


def test_pipeline_writes_outputs(stack_path, tmp_path):
    out_dir = tmp_path / "out"
    result = run_cell_segmentation_pipeline(stack_path, _config(), out_dir=out_dir)

    for key in ("config", "stats", "summary", "composite", "histogram", "dapi_labels", "ph3_overlay"):
        assert result.outputs[key].exists(), key

    stats = pd.read_csv(out_dir / "cell_stats.csv")
    assert len(stats) == len(result.stats)
    labels = sitk.ReadImage((out_dir / "dapi_labels.tif").as_posix())
    assert labels.GetPixelID() == sitk.sitkUInt16


def test_pipeline_skips_images_and_plots(stack_path, tmp_path):
    result = run_cell_segmentation_pipeline(
        stack_path, _config(), out_dir=tmp_path, write_images=False, write_plots=False
    )
    assert set(result.outputs) == {"config", "stats", "summary"}


def test_pipeline_requires_single_reference(stack_path):
    config = PipelineConfig(channels=[ChannelSpec("dapi", 2), ChannelSpec("ph3", 0)])
    with pytest.raises(ValueError):
        run_cell_segmentation_pipeline(stack_path, config)


def test_pipeline_missing_image(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_cell_segmentation_pipeline(tmp_path / "nope.tif")


def _write_pages(path, pages):
    pages = np.clip(np.stack(pages, axis=0), 0, 255).astype(np.uint8)
    sitk.WriteImage(sitk.GetImageFromArray(pages), path.as_posix())
    return path


def test_pipeline_blank_page_gives_zero_cells(stain_arrays, tmp_path, caplog):
    path = _write_pages(
        tmp_path / "blank_ph3.tif",
        [np.zeros_like(stain_arrays["ph3"]), stain_arrays["ki67"], stain_arrays["dapi"]],
    )
    with caplog.at_level(logging.WARNING, logger="fluoseg.segmentation.thresholding"):
        result = run_cell_segmentation_pipeline(path, _config())

    summary = result.summary.set_index("stain")
    assert summary.loc["ph3", "n_cells"] == 0
    assert summary.loc["dapi", "n_cells"] > 0
    assert not np.any(sitk.GetArrayFromImage(result.refined["ph3"]))
    assert any("ph3" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_composite_follows_configured_channel_order(stack_path, tmp_path):
    config = _config(
        channels=[
            ChannelSpec("mitosis", 0),
            ChannelSpec("proliferation", 1),
            ChannelSpec("nuclei", 2, reliable=True),
        ]
    )
    result = run_cell_segmentation_pipeline(stack_path, config, out_dir=tmp_path, write_images=False)
    assert result.outputs["composite"].exists()
    assert set(result.summary["stain"]) == {"mitosis", "proliferation", "nuclei"}


def test_composite_skipped_with_two_channels(stack_path, tmp_path, caplog):
    config = _config(channels=[ChannelSpec("ph3", 0), ChannelSpec("dapi", 2, reliable=True)])
    with caplog.at_level(logging.WARNING, logger="fluoseg.pipelines.cell_segmentation_pipeline"):
        result = run_cell_segmentation_pipeline(stack_path, config, out_dir=tmp_path, write_images=False)

    assert "composite" not in result.outputs
    assert "ph3_overlay" in result.outputs
    assert any("composite" in r.getMessage() for r in caplog.records)
