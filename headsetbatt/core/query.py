"""Battery query exchange: optional priming read, write, timed read, byte extraction."""

from __future__ import annotations

import logging
import threading

from headsetbatt.core.errors import (
    ReadAbandonedError,
    ReadFailedError,
    ReadTimeoutError,
    ShortResponseError,
    TransportError,
    WriteFailedError,
)
from headsetbatt.core.model import (
    INPUT_REPORT_ID,
    INPUT_REPORT_SIZE,
    READ_BUFFER_SIZE,
    READ_TIMEOUT_MS,
    BatteryQueryDescriptor,
)
from headsetbatt.transports.base import HIDDevice

LOGGER = logging.getLogger(__name__)

# Extra wait beyond the transport timeout before the read is abandoned.
_DEADLINE_GRACE_S = 0.5


def _read_with_deadline(device: HIDDevice, size: int, timeout_ms: int) -> bytes:
    """Read on a worker thread, giving up once the deadline passes.

    If the read is still running at the deadline, the worker takes ownership of
    the handle and closes it when the read finally returns, so the handle is
    never closed underneath an in-flight read.
    """
    result: list[bytes] = []
    errors: list[Exception] = []
    state = threading.Lock()
    finished = False
    abandoned = False

    def _run() -> None:
        nonlocal finished
        try:
            result.append(device.read(size, timeout_ms))
        except Exception as exc:
            errors.append(exc)
        finally:
            with state:
                finished = True
                release = abandoned
            if release:
                LOGGER.debug("Abandoned read returned; closing handle")
                device.close()

    worker = threading.Thread(target=_run, name="headsetbatt-read", daemon=True)
    worker.start()
    worker.join(timeout_ms / 1000 + _DEADLINE_GRACE_S)
    with state:
        if not finished:
            abandoned = True
    if abandoned:
        raise ReadAbandonedError(f"No response within {timeout_ms} ms", worker)
    if errors:
        exc = errors[0]
        if isinstance(exc, TransportError):
            raise exc
        raise ReadFailedError(f"HID read failed: {exc}") from exc
    return result[0]


def query_battery(
    device: HIDDevice,
    descriptor: BatteryQueryDescriptor,
    *,
    timeout_ms: int = READ_TIMEOUT_MS,
) -> int:
    """Run one request/response exchange and return the raw battery byte (0-255).

    No retries are attempted; any failure is raised to the caller. On
    `ReadAbandonedError` the handle belongs to the still-running read and the
    caller must not close it.
    """
    if descriptor.pre_read:
        report = device.get_input_report(INPUT_REPORT_ID, INPUT_REPORT_SIZE)
        LOGGER.debug("Priming input report %d returned %d bytes", INPUT_REPORT_ID, len(report))

    request = descriptor.build_request()
    written = device.write(request)
    if written is not None and written < 0:
        raise WriteFailedError(f"HID write returned {written}")

    response = _read_with_deadline(device, READ_BUFFER_SIZE, timeout_ms)
    if not response:
        raise ReadTimeoutError(f"No response within {timeout_ms} ms")
    if len(response) <= descriptor.battery_offset:
        raise ShortResponseError(
            f"Response of {len(response)} bytes does not reach battery byte {descriptor.battery_offset} "
            f"for protocol '{descriptor.id}'"
        )

    LOGGER.debug("Protocol '%s' response: %s", descriptor.id, response.hex())
    return response[descriptor.battery_offset]
