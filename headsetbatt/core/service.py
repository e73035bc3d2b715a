"""Service layer used by the CLI, the poll loop, and the public API."""

from __future__ import annotations

import logging
import threading
from typing import Any

from headsetbatt.core.config import DEFAULT_ENTITY_ID, DEFAULT_PRODUCT_NAME
from headsetbatt.core.device_match import find_target
from headsetbatt.core.errors import (
    HeadsetBattError,
    InvalidReadingError,
    NoDeviceFoundError,
    ReadAbandonedError,
)
from headsetbatt.core.model import (
    READ_TIMEOUT_MS,
    BatteryQueryDescriptor,
    BatteryReading,
    DetectedDevice,
    DeviceCatalogEntry,
)
from headsetbatt.core.protocol_loader import load_protocols
from headsetbatt.core.protocol_table import ProtocolTable
from headsetbatt.core.query import query_battery
from headsetbatt.sinks.base import TelemetrySink
from headsetbatt.transports.base import HIDTransport
from headsetbatt.transports.hidapi import HidapiTransport

LOGGER = logging.getLogger(__name__)

MAX_BATTERY_LEVEL = 100


class BatteryService:
    def __init__(
        self,
        *,
        transport: HIDTransport | None = None,
        sink: TelemetrySink | None = None,
        protocols: ProtocolTable | None = None,
        product_name: str = DEFAULT_PRODUCT_NAME,
        entity_id: str = DEFAULT_ENTITY_ID,
        strict: bool = False,
        timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        if protocols is None:
            loaded = load_protocols()
            protocols = loaded.table
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.protocols = protocols
        self.transport = transport or HidapiTransport()
        self.sink = sink
        self.product_name = product_name
        self.entity_id = entity_id
        self.strict = strict
        self.timeout_ms = timeout_ms
        self._cycle_lock = threading.Lock()
        self._abandoned_read: threading.Thread | None = None

    def list_protocols(self) -> list[BatteryQueryDescriptor]:
        return list(self.protocols)

    def list_devices(self) -> list[DetectedDevice]:
        return [
            DetectedDevice(
                entry=entry,
                protocol_id=self.protocols.lookup(entry.manufacturer, entry.product).id,
            )
            for entry in self.transport.enumerate()
        ]

    def find_target(self) -> DeviceCatalogEntry | None:
        return find_target(self.transport.enumerate(), self.product_name, self.transport)

    def resolve_target(self) -> DeviceCatalogEntry:
        target = self.find_target()
        if target is None:
            raise NoDeviceFoundError(f"No {self.product_name} found. Ensure the headset is on and connected.")
        return target

    def read_battery(self, target: DeviceCatalogEntry) -> BatteryReading:
        device = self.transport.open(target.path)
        owned = True
        try:
            manufacturer = device.manufacturer or target.manufacturer
            product = device.product or target.product
            descriptor = self.protocols.lookup(manufacturer, product, strict=self.strict)
            LOGGER.debug("Querying %s with protocol '%s'", product, descriptor.id)
            level = query_battery(device, descriptor, timeout_ms=self.timeout_ms)
        except ReadAbandonedError as exc:
            # The read thread closes the handle once its read returns.
            owned = False
            self._abandoned_read = exc.worker
            raise
        finally:
            if owned:
                device.close()
        return BatteryReading(level=level, protocol_id=descriptor.id, product=product)

    def report(self, reading: BatteryReading) -> None:
        if self.sink is None:
            return
        self.sink.set_state(self.entity_id, str(reading.level), _attributes(reading))

    def run_cycle(self) -> BatteryReading | None:
        """Discover, query, and report once. Never raises; failures return None."""
        if not self._cycle_lock.acquire(blocking=False):
            LOGGER.warning("Previous battery cycle still running; skipping")
            return None
        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> BatteryReading | None:
        if self._abandoned_read is not None:
            if self._abandoned_read.is_alive():
                LOGGER.warning("Previous HID read has not returned yet; skipping cycle")
                return None
            self._abandoned_read = None

        try:
            target = self.find_target()
            if target is None:
                LOGGER.info("No %s found", self.product_name)
                return None

            reading = self.read_battery(target)
            _validate(reading)
            self.report(reading)
        except (HeadsetBattError, OSError) as exc:
            LOGGER.error("Battery cycle failed: %s", exc)
            return None
        except Exception:
            LOGGER.exception("Unexpected error during battery cycle")
            return None

        LOGGER.info("Battery level updated: %d%%", reading.level)
        return reading


def _validate(reading: BatteryReading) -> None:
    if reading.level == 0:
        raise InvalidReadingError(f"Could not get battery level from {reading.product} (device returned 0)")
    if reading.level > MAX_BATTERY_LEVEL:
        raise InvalidReadingError(
            f"Battery level {reading.level} from {reading.product} is out of range; not reporting"
        )


def _attributes(reading: BatteryReading) -> dict[str, Any]:
    return {
        "source": reading.product,
        "friendly_name": "Headphone Battery",
        "icon": "mdi:battery",
        "unit_of_measurement": "%",
    }
