"""Configuration dataclasses for the :mod:`fluoseg` segmentation pipeline."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Tuple

import yaml


@dataclass(slots=True)
class ChannelSpec:
    """One stain in the multi-page source image."""

    stain: str
    index: int  # slice (or RGB component) in the source stack
    reliable: bool = False  # reference channel used for refinement


@dataclass(slots=True)
class ThresholdConfig:
    """Smoothing and Li-threshold parameters for per-channel segmentation."""

    gaussian_sigma: float = 0.5  # physical units
    n_histogram_bins: int = 256


@dataclass(slots=True)
class SplitConfig:
    """Parameters for distance-transform + watershed blob splitting."""

    distance_sigma: float = 3.0
    fully_connected: bool = True
    mark_watershed_line: bool = True


@dataclass(slots=True)
class RefinementConfig:
    """Parameters for reconstructing unreliable channels inside reliable cells."""

    fully_connected: bool = False
    inherit_reference_labels: bool = False


@dataclass(slots=True)
class StatsConfig:
    """Tabulation and plotting options."""

    exclude_border_cells: bool = True
    histogram_bins: int = 30


def default_channels() -> list[ChannelSpec]:
    return [
        ChannelSpec("ph3", 0),
        ChannelSpec("ki67", 1),
        ChannelSpec("dapi", 2, reliable=True),
    ]


@dataclass(slots=True)
class PipelineConfig:
    """Top-level configuration passed to :func:`run_cell_segmentation_pipeline`."""

    channels: list[ChannelSpec] = field(default_factory=default_channels)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    refinement: RefinementConfig = field(default_factory=RefinementConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    spacing: Tuple[float, float] | None = None  # overrides the file's pixel size

    @property
    def reference_stain(self) -> str:
        return next(spec.stain for spec in self.channels if spec.reliable)

    def validate(self) -> "PipelineConfig":
        """Raise ``ValueError`` for inconsistent settings; return ``self``."""
        if not self.channels:
            raise ValueError("At least one channel must be configured.")
        stains = [spec.stain for spec in self.channels]
        if len(set(stains)) != len(stains):
            raise ValueError(f"Duplicate stain names in channel list: {stains}")
        n_reliable = sum(spec.reliable for spec in self.channels)
        if n_reliable != 1:
            raise ValueError(f"Exactly one channel must be reliable, found {n_reliable}.")
        if any(spec.index < 0 for spec in self.channels):
            raise ValueError("Channel indices must be non-negative.")
        if self.threshold.gaussian_sigma < 0 or self.split.distance_sigma < 0:
            raise ValueError("Smoothing sigmas must be non-negative.")
        if self.threshold.n_histogram_bins < 2:
            raise ValueError("n_histogram_bins must be at least 2.")
        if self.spacing is not None:
            if len(self.spacing) != 2 or any(s <= 0 for s in self.spacing):
                raise ValueError(f"spacing must be two positive values, got {self.spacing}")
        return self

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        if self.spacing is not None:
            out["spacing"] = list(self.spacing)
        return out


def _build(cls, values: Mapping[str, Any] | None):
    values = dict(values or {})
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**values)


def config_from_dict(values: Mapping[str, Any]) -> PipelineConfig:
    """Build and validate a :class:`PipelineConfig` from plain mappings."""
    values = dict(values or {})
    unknown = set(values) - {f.name for f in fields(PipelineConfig)}
    if unknown:
        raise ValueError(f"Unknown PipelineConfig keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {}
    if "channels" in values:
        kwargs["channels"] = [_build(ChannelSpec, spec) for spec in values["channels"]]
    for key, cls in (
        ("threshold", ThresholdConfig),
        ("split", SplitConfig),
        ("refinement", RefinementConfig),
        ("stats", StatsConfig),
    ):
        if key in values:
            kwargs[key] = _build(cls, values[key])
    if values.get("spacing") is not None:
        kwargs["spacing"] = tuple(float(s) for s in values["spacing"])
    return PipelineConfig(**kwargs).validate()


def load_config(path: Path | str) -> PipelineConfig:
    """Read a YAML config file; missing sections fall back to defaults."""
    with open(path, "r") as f:
        values = yaml.safe_load(f) or {}
    if not isinstance(values, Mapping):
        raise ValueError(f"Config file {path} must contain a mapping at top level.")
    return config_from_dict(values)


def save_config(config: PipelineConfig, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
    return path


__all__ = [
    "ChannelSpec",
    "ThresholdConfig",
    "SplitConfig",
    "RefinementConfig",
    "StatsConfig",
    "PipelineConfig",
    "default_channels",
    "config_from_dict",
    "load_config",
    "save_config",
]
