"""Fluorescent-microscopy cell segmentation built on SimpleITK."""

__version__ = "0.1.0"
