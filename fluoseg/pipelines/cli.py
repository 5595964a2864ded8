"""Command-line entry point for the cell segmentation pipeline."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from fluoseg.config import PipelineConfig, load_config
from fluoseg.pipelines.cell_segmentation_pipeline import run_cell_segmentation_pipeline


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    config = load_config(args.config) if args.config is not None else PipelineConfig()
    if args.keep_border_cells:
        config.stats.exclude_border_cells = False
    if args.spacing is not None:
        config.spacing = tuple(args.spacing)
    return config.validate()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Segment cells in a multi-stain fluorescence image.")
    parser.add_argument("image", type=Path, help="Multi-page TIFF with one page per stain")
    parser.add_argument("--config", type=Path, default=None, help="YAML parameter file")
    parser.add_argument("--out-dir", type=Path, default=None, help="Directory for tables and figures")
    parser.add_argument(
        "--keep-border-cells", action="store_true", help="Keep cells touching the image boundary"
    )
    parser.add_argument(
        "--spacing", type=float, nargs=2, metavar=("SX", "SY"), default=None,
        help="Override the physical pixel size",
    )
    parser.add_argument("--execute", action="store_true", help="Execute instead of dry run")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = resolve_config(args)
    print("=== Cell segmentation ===")
    print(f"Image: {args.image}")
    print(f"Stains: {', '.join(f'{c.stain}[{c.index}]' for c in config.channels)}")
    print(f"Reference stain: {config.reference_stain}")
    print(f"Output directory: {args.out_dir if args.out_dir is not None else '(none)'}")

    if not args.execute:
        print("Dry run: no actions executed. Use --execute to run the pipeline.")
        return 0

    result = run_cell_segmentation_pipeline(args.image, config, out_dir=args.out_dir)
    print(result.summary.to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
