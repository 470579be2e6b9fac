"""Kernel value-object types."""

from sheetstream.kernel.types.slug import Slug

__all__ = ["Slug"]
