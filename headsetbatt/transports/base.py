"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from headsetbatt.core.model import DeviceCatalogEntry


class HIDDevice(Protocol):
    manufacturer: str
    product: str

    def write(self, data: bytes) -> int:
        """Write an output report, returning the number of bytes written."""

    def read(self, size: int, timeout_ms: int) -> bytes:
        """Read an input report, returning empty bytes when the timeout expires."""

    def get_input_report(self, report_id: int, size: int) -> bytes:
        """Fetch an input report over the control channel."""

    def close(self) -> None:
        """Release the handle."""

    def __enter__(self) -> HIDDevice: ...

    def __exit__(self, *exc_info: object) -> None: ...


class HIDTransport(Protocol):
    def enumerate(self) -> list[DeviceCatalogEntry]:
        """List every HID endpoint currently attached."""

    def open(self, path: bytes) -> HIDDevice:
        """Open a HID path, raising OpenFailedError on failure."""
