"""Ordered protocol table mapping manufacturer/product strings to query descriptors."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from headsetbatt.core.errors import ProtocolValidationError, UnrecognizedProtocolError
from headsetbatt.core.model import BatteryQueryDescriptor

LOGGER = logging.getLogger(__name__)


class ProtocolTable:
    """Rows are checked in declared order; the single fallback row is used last.

    Matching is case-sensitive substring containment on both the manufacturer
    and product strings. An unmatched device silently gets the fallback row
    unless ``strict`` is requested.
    """

    def __init__(self, rows: Iterable[BatteryQueryDescriptor]) -> None:
        self._rows: list[BatteryQueryDescriptor] = []
        fallbacks: list[BatteryQueryDescriptor] = []
        seen: set[str] = set()
        for row in rows:
            if row.id in seen:
                raise ProtocolValidationError(f"Duplicate protocol id '{row.id}'")
            seen.add(row.id)
            if row.fallback:
                fallbacks.append(row)
            else:
                self._rows.append(row)
        if len(fallbacks) != 1:
            ids = ", ".join(r.id for r in fallbacks) or "none"
            raise ProtocolValidationError(f"Protocol table needs exactly one fallback row (found: {ids})")
        self._fallback = fallbacks[0]

    @property
    def fallback(self) -> BatteryQueryDescriptor:
        return self._fallback

    def __iter__(self) -> Iterator[BatteryQueryDescriptor]:
        yield from self._rows
        yield self._fallback

    def __len__(self) -> int:
        return len(self._rows) + 1

    def get(self, protocol_id: str) -> BatteryQueryDescriptor | None:
        return next((row for row in self if row.id == protocol_id), None)

    def lookup(self, manufacturer: str, product: str, *, strict: bool = False) -> BatteryQueryDescriptor:
        for row in self._rows:
            if row.matches(manufacturer, product):
                return row
        if strict:
            raise UnrecognizedProtocolError(
                f"No protocol row matches manufacturer '{manufacturer}' product '{product}'"
            )
        LOGGER.debug(
            "No protocol row matches '%s' / '%s'; using fallback '%s'",
            manufacturer,
            product,
            self._fallback.id,
        )
        return self._fallback
