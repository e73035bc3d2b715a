"""HID transport implementation using the `hid` package (hidapi bindings)."""

from __future__ import annotations

import logging
from types import ModuleType
from typing import Any

from headsetbatt.core.errors import (
    OpenFailedError,
    ReadFailedError,
    TransportError,
    WriteFailedError,
)
from headsetbatt.core.model import DeviceCatalogEntry

LOGGER = logging.getLogger(__name__)


def _hid() -> ModuleType:
    try:
        import hid  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportError(
            "HID transport requires 'hid' and the native hidapi library. Install both and retry."
        ) from exc
    return hid


def _entry_from_info(info: dict[str, Any]) -> DeviceCatalogEntry:
    path = info.get("path") or b""
    if isinstance(path, str):
        path = path.encode("utf-8")
    return DeviceCatalogEntry(
        path=path,
        vendor_id=int(info.get("vendor_id") or 0),
        product_id=int(info.get("product_id") or 0),
        manufacturer=info.get("manufacturer_string") or "",
        product=info.get("product_string") or "",
        usage_page=int(info.get("usage_page") or 0),
        usage=int(info.get("usage") or 0),
        interface_number=int(info.get("interface_number", -1)),
        bus_type=int(info.get("bus_type") or 0),
        serial_number=info.get("serial_number") or "",
        release_number=int(info.get("release_number") or 0),
    )


class HidapiDevice:
    """An open HID handle. Closing is idempotent."""

    def __init__(self, handle: Any, path: bytes, hid_module: ModuleType) -> None:
        self._handle = handle
        self._path = path
        self._hid = hid_module

    def _string(self, attr: str) -> str:
        try:
            return getattr(self._handle, attr) or ""
        except self._hid.HIDException as exc:
            LOGGER.debug("Could not read %s string from %r: %s", attr, self._path, exc)
            return ""

    @property
    def manufacturer(self) -> str:
        return self._string("manufacturer")

    @property
    def product(self) -> str:
        return self._string("product")

    def write(self, data: bytes) -> int:
        try:
            return self._handle.write(bytes(data))
        except (self._hid.HIDException, OSError) as exc:
            raise WriteFailedError(f"HID write failed on {self._path!r}: {exc}") from exc

    def read(self, size: int, timeout_ms: int) -> bytes:
        try:
            return bytes(self._handle.read(size, timeout_ms))
        except (self._hid.HIDException, OSError) as exc:
            raise ReadFailedError(f"HID read failed on {self._path!r}: {exc}") from exc

    def get_input_report(self, report_id: int, size: int) -> bytes:
        try:
            return bytes(self._handle.get_input_report(report_id, size))
        except (self._hid.HIDException, OSError) as exc:
            raise ReadFailedError(
                f"HID input report {report_id} failed on {self._path!r}: {exc}"
            ) from exc

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        handle.close()

    def __enter__(self) -> HidapiDevice:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class HidapiTransport:
    def enumerate(self) -> list[DeviceCatalogEntry]:
        hid = _hid()
        try:
            infos = hid.enumerate()
        except (hid.HIDException, OSError, ValueError) as exc:
            raise TransportError(f"HID enumeration failed: {exc}") from exc
        return [_entry_from_info(info) for info in infos]

    def open(self, path: bytes) -> HidapiDevice:
        hid = _hid()
        try:
            handle = hid.Device(path=path)
        except (hid.HIDException, OSError, ValueError) as exc:
            # hid.Device raises ValueError for an empty path.
            raise OpenFailedError(f"Could not open HID path {path!r}: {exc}") from exc
        return HidapiDevice(handle, path, hid)
