"""Quality-control helpers for cell statistics tables.

Import from submodules (e.g. ``fluoseg.qc.border``) directly.
"""

__all__: list[str] = []
