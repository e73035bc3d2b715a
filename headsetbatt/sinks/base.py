"""Telemetry sink interfaces."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class TelemetrySink(Protocol):
    def set_state(self, entity_id: str, state: str, attributes: Mapping[str, Any]) -> None:
        """Store a sensor state with its attributes, raising SinkError on failure."""
