"""Testing fixtures – pytest fixtures for export fakes.

Import in your ``conftest.py``::

    pytest_plugins = ["sheetstream.testing.fixtures"]
"""
from sheetstream.testing.fixtures.clock import fake_clock
from sheetstream.testing.fixtures.export import export_service, fake_memory, recording_events

__all__ = [
    "export_service",
    "fake_clock",
    "fake_memory",
    "recording_events",
]
