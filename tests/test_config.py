import pytest

yaml = pytest.importorskip("yaml")

from fluoseg.config import (
    ChannelSpec,
    PipelineConfig,
    config_from_dict,
    load_config,
    save_config,
)


def test_default_config_is_valid():
    config = PipelineConfig().validate()
    assert config.reference_stain == "dapi"
    assert [c.stain for c in config.channels] == ["ph3", "ki67", "dapi"]


def test_save_and_load_roundtrip(tmp_path):
    config = PipelineConfig(spacing=(0.5, 0.5))
    config.split.distance_sigma = 2.0
    config.stats.exclude_border_cells = False

    path = save_config(config, tmp_path / "cfg" / "params.yaml")
    loaded = load_config(path)

    assert loaded.split.distance_sigma == 2.0
    assert loaded.stats.exclude_border_cells is False
    assert loaded.spacing == (0.5, 0.5)
    assert loaded.channels == config.channels


def test_partial_yaml_uses_defaults(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text("threshold:\n  gaussian_sigma: 1.5\n")

    config = load_config(path)
    assert config.threshold.gaussian_sigma == 1.5
    assert config.threshold.n_histogram_bins == 256
    assert config.split.distance_sigma == 3.0


def test_unknown_keys_are_rejected():
    with pytest.raises(ValueError):
        config_from_dict({"thresholds": {}})
    with pytest.raises(ValueError):
        config_from_dict({"split": {"sigma": 1.0}})


@pytest.mark.parametrize(
    "channels",
    [
        [ChannelSpec("dapi", 0, reliable=True), ChannelSpec("ph3", 1, reliable=True)],
        [ChannelSpec("dapi", 0), ChannelSpec("ph3", 1)],
        [ChannelSpec("dapi", 0, reliable=True), ChannelSpec("dapi", 1)],
    ],
)
def test_invalid_channel_sets(channels):
    with pytest.raises(ValueError):
        PipelineConfig(channels=channels).validate()


def test_invalid_spacing():
    with pytest.raises(ValueError):
        PipelineConfig(spacing=(0.5, -1.0)).validate()
