from __future__ import annotations

import time

import pytest
from fakes import BlockingReader, FakeTransport, entry, response_with

from headsetbatt.core.errors import (
    ReadAbandonedError,
    ReadFailedError,
    ReadTimeoutError,
    ShortResponseError,
    WriteFailedError,
)
from headsetbatt.core.model import INPUT_REPORT_ID, INPUT_REPORT_SIZE, READ_BUFFER_SIZE, WRITE_BUFFER_SIZE
from headsetbatt.core.protocol_loader import load_protocols
from headsetbatt.core.query import query_battery


@pytest.fixture
def table():
    return load_protocols().table


def _open(transport: FakeTransport):
    return transport.open(transport.entries[0].path)


def test_cloud_ii_wireless_reads_byte_seven(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=response_with(7, 0x4B))
    with _open(transport) as device:
        level = query_battery(device, table.get("hp_cloud_ii_wireless"))

    assert level == 75
    write = transport.calls[0]
    assert write[0] == "write"
    assert len(write[1]) == WRITE_BUFFER_SIZE
    assert write[1][:4] == bytes.fromhex("06ffbb02")
    assert transport.calls[1] == ("read", READ_BUFFER_SIZE, 1000)


def test_offset_comes_from_descriptor(table) -> None:
    response = bytearray(20)
    response[3] = 0x32
    response[7] = 0xFF
    transport = FakeTransport([entry("/dev/hidraw0", product="HyperX Cloud Alpha Wireless")], response=bytes(response))
    with _open(transport) as device:
        assert query_battery(device, table.get("hp_cloud_alpha_wireless")) == 50


def test_cloud_ii_core_reads_byte_four(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=response_with(4, 0x5A))
    with _open(transport) as device:
        assert query_battery(device, table.get("hp_cloud_ii_core")) == 90


def test_raw_byte_is_not_clamped(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=response_with(7, 0xC8))
    with _open(transport) as device:
        assert query_battery(device, table.get("hp_cloud_ii_wireless")) == 200


def test_fallback_pre_reads_before_write_before_read(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0", manufacturer="Kingston")], response=response_with(7, 0x40))
    with _open(transport) as device:
        assert query_battery(device, table.fallback) == 64

    assert [call[0] for call in transport.calls] == ["input_report", "write", "read"]
    assert transport.calls[0] == ("input_report", INPUT_REPORT_ID, INPUT_REPORT_SIZE)


def test_no_pre_read_for_hp_rows(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=response_with(7, 0x40))
    with _open(transport) as device:
        query_battery(device, table.get("hp_cloud_ii_wireless"))
    assert [call[0] for call in transport.calls] == ["write", "read"]


def test_pre_read_failure_propagates_without_write(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0", manufacturer="Kingston")])
    transport.input_report_error = ReadFailedError("input report failed")
    with _open(transport) as device:
        with pytest.raises(ReadFailedError):
            query_battery(device, table.fallback)
    assert [call[0] for call in transport.calls] == ["input_report"]


def test_write_failure(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")])
    transport.write_error = WriteFailedError("write failed")
    with _open(transport) as device:
        with pytest.raises(WriteFailedError):
            query_battery(device, table.get("hp_cloud_ii_wireless"))


def test_negative_write_count_is_write_failure(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")])
    with _open(transport) as device:
        device.write = lambda data: -1
        with pytest.raises(WriteFailedError):
            query_battery(device, table.get("hp_cloud_ii_wireless"))


def test_empty_read_is_timeout(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=b"")
    with _open(transport) as device:
        with pytest.raises(ReadTimeoutError):
            query_battery(device, table.get("hp_cloud_ii_wireless"))


def test_read_error_is_read_failure(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")])

    def broken(size: int, timeout_ms: int) -> bytes:
        raise OSError("device unplugged")

    transport.reader = broken
    with _open(transport) as device:
        with pytest.raises(ReadFailedError) as exc:
            query_battery(device, table.get("hp_cloud_ii_wireless"))
    assert not isinstance(exc.value, ReadTimeoutError)


def test_blocking_read_times_out_instead_of_hanging(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")])
    reader = BlockingReader()
    transport.reader = reader
    device = _open(transport)
    started = time.monotonic()
    try:
        with pytest.raises(ReadTimeoutError) as exc:
            query_battery(device, table.get("hp_cloud_ii_wireless"), timeout_ms=50)
        assert time.monotonic() - started < 3
        assert isinstance(exc.value, ReadAbandonedError)
        assert exc.value.worker.is_alive()
        assert device.closed is False
    finally:
        reader.release.set()

    exc.value.worker.join(5)
    assert device.closed is True
    assert transport.open_handles == 0


def test_completed_read_leaves_handle_with_caller(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=response_with(7, 0x40))
    device = _open(transport)
    query_battery(device, table.get("hp_cloud_ii_wireless"))
    assert device.closed is False
    device.close()


def test_short_response_is_protocol_error(table) -> None:
    transport = FakeTransport([entry("/dev/hidraw0")], response=bytes(5))
    with _open(transport) as device:
        with pytest.raises(ShortResponseError):
            query_battery(device, table.get("hp_cloud_ii_wireless"))
