"""Segmentation utilities organised by responsibility.

Modules intentionally avoid package-level re-exports; import concrete
implementations from ``thresholding``, ``splitting`` or ``refinement`` as
needed.
"""

__all__: list[str] = []
