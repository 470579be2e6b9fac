"""Observability – structured logging setup and helpers."""
from sheetstream.observability.logging.factory import JsonLoggerFactory
from sheetstream.observability.logging.processors import get_logger
from sheetstream.observability.logging.protocol import Logger

__all__ = ["JsonLoggerFactory", "Logger", "get_logger"]
