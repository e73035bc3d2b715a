"""Fixed-delay poll loop around BatteryService.run_cycle."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from headsetbatt.core.config import DEFAULT_INTERVAL_S
from headsetbatt.core.model import BatteryReading

LOGGER = logging.getLogger(__name__)


class CycleRunner(Protocol):
    def run_cycle(self) -> BatteryReading | None: ...


class PollLoop:
    """Runs a cycle immediately, then again ``interval_s`` after each one finishes.

    Cycles never overlap: the next wait only starts once the previous cycle
    has returned.
    """

    def __init__(self, service: CycleRunner, *, interval_s: float = DEFAULT_INTERVAL_S) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.service = service
        self.interval_s = interval_s

    def run(self, stop_event: threading.Event | None = None, *, max_cycles: int | None = None) -> int:
        """Loop until ``stop_event`` is set or ``max_cycles`` ran. Returns the cycle count."""
        stop_event = stop_event or threading.Event()
        cycles = 0
        LOGGER.info("Polling every %.0f s", self.interval_s)
        while not stop_event.is_set():
            self.service.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            stop_event.wait(self.interval_s)
        return cycles
