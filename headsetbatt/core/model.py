"""Core data models used across loader, engine, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass

WRITE_BUFFER_SIZE = 52
READ_BUFFER_SIZE = 20
INPUT_REPORT_SIZE = 160
INPUT_REPORT_ID = 6
READ_TIMEOUT_MS = 1000
DEFAULT_BATTERY_OFFSET = 7


@dataclass(frozen=True)
class DeviceCatalogEntry:
    path: bytes
    vendor_id: int
    product_id: int
    manufacturer: str
    product: str
    usage_page: int
    usage: int
    interface_number: int
    bus_type: int = 0
    serial_number: str = ""
    release_number: int = 0

    @property
    def display_path(self) -> str:
        return self.path.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class BatteryQueryDescriptor:
    id: str
    name: str
    manufacturer_contains: str
    product_contains: str
    request: bytes
    battery_offset: int = DEFAULT_BATTERY_OFFSET
    pre_read: bool = False
    fallback: bool = False

    def matches(self, manufacturer: str, product: str) -> bool:
        return self.manufacturer_contains in manufacturer and self.product_contains in product

    def build_request(self) -> bytes:
        """Return the zero-filled write buffer carrying this row's request bytes."""
        return self.request.ljust(WRITE_BUFFER_SIZE, b"\x00")


@dataclass(frozen=True)
class BatteryReading:
    level: int
    protocol_id: str
    product: str


@dataclass(frozen=True)
class DetectedDevice:
    entry: DeviceCatalogEntry
    protocol_id: str
