"""Per-label shape statistics."""

__all__: list[str] = []
