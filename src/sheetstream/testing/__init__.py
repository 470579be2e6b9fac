"""Testing support – fakes, fixtures and generators for export tests.

Import in your ``conftest.py``::

    pytest_plugins = ["sheetstream.testing.fixtures"]
"""

from sheetstream.testing.fakes import (
    FakeClock,
    FakeMemoryProbe,
    InMemoryByteSink,
    RecordedEvent,
    RecordingExportEvents,
)
from sheetstream.testing.generators import cell_strategy, rows_strategy

__all__ = [
    "FakeClock",
    "FakeMemoryProbe",
    "InMemoryByteSink",
    "RecordedEvent",
    "RecordingExportEvents",
    "cell_strategy",
    "rows_strategy",
]
