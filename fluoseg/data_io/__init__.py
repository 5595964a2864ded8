"""Image input/output for multi-channel microscopy stacks."""

from fluoseg.data_io.tiff_io import (
    extract_channel,
    load_channels,
    read_stack,
    write_label_image,
)

__all__ = [
    "extract_channel",
    "load_channels",
    "read_stack",
    "write_label_image",
]
