"""Observability – memory sampling for export guardrails."""
from sheetstream.observability.profiling.memory import MemoryProbe, MemorySampler, format_bytes

__all__ = ["MemoryProbe", "MemorySampler", "format_bytes"]
