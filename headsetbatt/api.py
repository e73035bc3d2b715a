"""Stable public API for building tooling on top of headsetbatt.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from headsetbatt.core.errors import (
    ConfigError,
    HeadsetBattError,
    InvalidReadingError,
    NoDeviceFoundError,
    OpenFailedError,
    ProtocolLoadError,
    ProtocolValidationError,
    ReadAbandonedError,
    ReadFailedError,
    ReadTimeoutError,
    ShortResponseError,
    SinkError,
    TransportError,
    UnrecognizedProtocolError,
    WriteFailedError,
)
from headsetbatt.core.model import (
    BatteryQueryDescriptor,
    BatteryReading,
    DetectedDevice,
    DeviceCatalogEntry,
)
from headsetbatt.core.protocol_table import ProtocolTable
from headsetbatt.core.query import query_battery
from headsetbatt.core.service import BatteryService
from headsetbatt.sinks.base import TelemetrySink
from headsetbatt.sinks.homeassistant import HomeAssistantSink
from headsetbatt.transports.base import HIDTransport
from headsetbatt.transports.hidapi import HidapiTransport

__all__ = [
    "HeadsetBattError",
    "ConfigError",
    "ProtocolLoadError",
    "ProtocolValidationError",
    "UnrecognizedProtocolError",
    "NoDeviceFoundError",
    "InvalidReadingError",
    "SinkError",
    "TransportError",
    "OpenFailedError",
    "WriteFailedError",
    "ReadFailedError",
    "ReadTimeoutError",
    "ReadAbandonedError",
    "ShortResponseError",
    "BatteryQueryDescriptor",
    "BatteryReading",
    "DetectedDevice",
    "DeviceCatalogEntry",
    "ProtocolTable",
    "HomeAssistantSink",
    "HidapiTransport",
    "query_battery",
    "Client",
]


class Client:
    """Public client for reading headset battery levels.

    A `Client` wraps protocol loading, HID discovery/matching, and the battery
    query exchange behind a stable API intended for third-party tools
    (tray icons, services, scripts). Pass a `sink` to have `poll` report
    readings.
    """

    def __init__(
        self,
        *,
        product_name: str | None = None,
        transport: HIDTransport | None = None,
        sink: TelemetrySink | None = None,
        strict: bool = False,
    ) -> None:
        kwargs = {"transport": transport, "sink": sink, "strict": strict}
        if product_name:
            kwargs["product_name"] = product_name
        self._service = BatteryService(**kwargs)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_protocols(self) -> list[BatteryQueryDescriptor]:
        return self._service.list_protocols()

    def list_devices(self) -> list[DetectedDevice]:
        return self._service.list_devices()

    def find_target(self) -> DeviceCatalogEntry | None:
        return self._service.find_target()

    def read_battery(self) -> BatteryReading:
        """Query the headset once, raising on any failure (including no device)."""
        return self._service.read_battery(self._service.resolve_target())

    def poll(self) -> BatteryReading | None:
        """Run one full cycle; failures are logged and return None."""
        return self._service.run_cycle()
