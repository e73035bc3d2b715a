"""Selection of the headset's report interface among enumerated HID endpoints."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from headsetbatt.core.errors import TransportError
from headsetbatt.core.model import DeviceCatalogEntry
from headsetbatt.transports.base import HIDTransport

LOGGER = logging.getLogger(__name__)


def find_target(
    entries: Iterable[DeviceCatalogEntry],
    product_name: str,
    transport: HIDTransport,
) -> DeviceCatalogEntry | None:
    """Return the matching endpoint with the highest usage, or None.

    Each candidate is opened briefly to read its product string from the
    device itself; only one handle is open at a time. Equal usages keep the
    first endpoint seen.
    """
    best: DeviceCatalogEntry | None = None
    for entry in entries:
        try:
            with transport.open(entry.path) as device:
                product = device.product
        except TransportError as exc:
            LOGGER.debug("Skipping %s: %s", entry.display_path, exc)
            continue

        if product != product_name:
            continue

        LOGGER.debug("Found device: %s usage=0x%04x path=%s", product, entry.usage, entry.display_path)
        if best is None or entry.usage > best.usage:
            best = entry
    return best
