"""Observability – BytesPreviewFilter."""
from __future__ import annotations

from typing import Any


class BytesPreviewFilter:
    """Replace raw ``bytes`` values with a bounded hex preview.

    Payloads can be arbitrarily large and binary; log events must not carry
    them verbatim.
    """

    def __init__(self, max_bytes: int = 32) -> None:
        self._max_bytes = max_bytes

    def preview(self, data: bytes | bytearray | memoryview) -> str:
        raw = bytes(data)
        head = raw[: self._max_bytes].hex()
        if len(raw) > self._max_bytes:
            return f"{head}…(+{len(raw) - self._max_bytes} bytes)"
        return head

    def filter_deep(self, data: dict[str, Any]) -> dict[str, Any]:
        """Recursively replace binary values in nested dicts."""
        result: dict[str, Any] = {}
        for k, v in data.items():
            if isinstance(v, (bytes, bytearray, memoryview)):
                result[k] = self.preview(v)
            elif isinstance(v, dict):
                result[k] = self.filter_deep(v)
            else:
                result[k] = v
        return result


__all__ = ["BytesPreviewFilter"]
