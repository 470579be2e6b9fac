"""Testing fakes – in-memory doubles for export ports."""
from sheetstream.kernel.time import FrozenClock
from sheetstream.testing.fakes.clock import FakeClock
from sheetstream.testing.fakes.events import RecordedEvent, RecordingExportEvents
from sheetstream.testing.fakes.memory import FakeMemoryProbe
from sheetstream.testing.fakes.sink import InMemoryByteSink

__all__ = [
    "FakeClock",
    "FakeMemoryProbe",
    "FrozenClock",
    "InMemoryByteSink",
    "RecordedEvent",
    "RecordingExportEvents",
]
