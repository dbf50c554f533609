"""Observability – JsonLoggerFactory."""
from __future__ import annotations

import logging
from typing import Any

import structlog

from mp_payloads.observability.logging.filters import BytesPreviewFilter


class JsonLoggerFactory:
    """Configure structlog and route stdlib logging through a JSON renderer.

    Fields passed with ``extra=`` on stdlib records become event keys, so
    raw payload bytes logged by the deserializer are shortened by
    :class:`BytesPreviewFilter` like any structlog field.
    """

    @staticmethod
    def configure(level: int = logging.INFO, max_bytes_preview: int | None = 32) -> None:
        shared_processors: list[Any] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]
        if max_bytes_preview is not None:
            _filter = BytesPreviewFilter(max_bytes_preview)

            def _preview(logger: Any, method: Any, event_dict: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
                return _filter.filter_deep(event_dict)

            shared_processors.insert(0, _preview)

        structlog.configure(
            processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *shared_processors],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)


__all__ = ["JsonLoggerFactory"]
