"""Testing generators – property-based test data."""
from sheetstream.testing.generators.strategies import cell_strategy, rows_strategy

__all__ = ["cell_strategy", "rows_strategy"]
