"""Observability – structured logging and memory sampling."""

from sheetstream.observability.logging import JsonLoggerFactory, Logger, get_logger
from sheetstream.observability.profiling import MemoryProbe, MemorySampler

__all__ = [
    "JsonLoggerFactory",
    "Logger",
    "MemoryProbe",
    "MemorySampler",
    "get_logger",
]
