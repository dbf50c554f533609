"""Observability – structured logging setup and helpers."""
from mp_payloads.observability.logging.factory import JsonLoggerFactory
from mp_payloads.observability.logging.filters import BytesPreviewFilter
from mp_payloads.observability.logging.processors import get_logger

__all__ = ["BytesPreviewFilter", "JsonLoggerFactory", "get_logger"]
