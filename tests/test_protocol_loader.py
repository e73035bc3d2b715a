from __future__ import annotations

from pathlib import Path

import pytest

from headsetbatt.core.errors import ProtocolValidationError
from headsetbatt.core.protocol_loader import load_protocols


def _write_protocols(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _user_file(root: Path, name: str) -> Path:
    return root / "cfg" / "headsetbatt" / "protocols" / name


def test_load_packaged_protocols() -> None:
    loaded = load_protocols()
    table = loaded.table
    assert [row.id for row in table] == [
        "hp_cloud_ii_core",
        "hp_cloud_ii_wireless",
        "hp_cloud_alpha_wireless",
        "kingston_cloud_ii_wireless",
    ]
    assert loaded.warnings == ()

    core = table.get("hp_cloud_ii_core")
    assert core.request.hex() == "6689"
    assert core.battery_offset == 4
    assert core.pre_read is False

    wireless = table.get("hp_cloud_ii_wireless")
    assert wireless.request.hex() == "06ffbb02"
    assert wireless.battery_offset == 7

    alpha = table.get("hp_cloud_alpha_wireless")
    assert alpha.request.hex() == "21bb0b"
    assert alpha.battery_offset == 3

    kingston = table.fallback
    assert kingston.id == "kingston_cloud_ii_wireless"
    assert kingston.pre_read is True
    assert kingston.battery_offset == 7


def test_user_row_is_inserted_before_fallback(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "extra.yaml"),
        """
protocols:
  - id: hp_cloud_iii_wireless
    name: HyperX Cloud III Wireless
    match:
      manufacturer_contains: "HP"
      product_contains: "Cloud III Wireless"
    request: "66 89"
    battery_offset: 5
""",
    )

    table = load_protocols().table
    ids = [row.id for row in table]
    assert ids[-2:] == ["hp_cloud_iii_wireless", "kingston_cloud_ii_wireless"]
    assert table.lookup("HP", "HyperX Cloud III Wireless").battery_offset == 5


def test_user_row_overrides_packaged_in_place(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "override.yaml"),
        """
protocols:
  - id: hp_cloud_ii_core
    name: User Override
    match:
      manufacturer_contains: "HP"
      product_contains: "Cloud II Core"
    request: "6689"
    battery_offset: 6
""",
    )

    loaded = load_protocols()
    assert [row.id for row in loaded.table][0] == "hp_cloud_ii_core"
    assert loaded.table.get("hp_cloud_ii_core").name == "User Override"
    assert loaded.table.get("hp_cloud_ii_core").battery_offset == 6
    assert any("overrides" in warning for warning in loaded.warnings)


def test_user_fallback_replaces_packaged_fallback(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "fallback.yaml"),
        """
protocols:
  - id: generic_headset
    name: Generic headset
    match: {}
    request: "06ffbb02"
    fallback: true
""",
    )

    loaded = load_protocols()
    assert loaded.table.fallback.id == "generic_headset"
    assert loaded.table.get("kingston_cloud_ii_wireless") is None
    assert any("replaces fallback" in warning for warning in loaded.warnings)


def test_invalid_hex_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "bad.yaml"),
        """
protocols:
  - id: bad_hex
    name: Bad Hex
    match:
      manufacturer_contains: "Bad"
    request: "xyz"
""",
    )

    with pytest.raises(ProtocolValidationError):
        load_protocols()


def test_request_longer_than_write_buffer_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "long.yaml"),
        f"""
protocols:
  - id: too_long
    name: Too Long
    match:
      manufacturer_contains: "Long"
    request: "{'00' * 53}"
""",
    )

    with pytest.raises(ProtocolValidationError):
        load_protocols()


def test_offset_outside_response_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "offset.yaml"),
        """
protocols:
  - id: far_offset
    name: Far Offset
    match:
      manufacturer_contains: "Far"
    request: "01"
    battery_offset: 20
""",
    )

    with pytest.raises(ProtocolValidationError):
        load_protocols()


def test_missing_required_keys_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "missing.yaml"),
        """
protocols:
  - id: missing
    name: Missing
    match:
      manufacturer_contains: "Missing"
""",
    )

    with pytest.raises(ProtocolValidationError):
        load_protocols()


def test_duplicate_yaml_keys_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "dup.yaml"),
        """
protocols:
  - id: dup
    name: Duplicate
    match:
      manufacturer_contains: "Dup"
    request: "01"
    request: "02"
""",
    )

    with pytest.raises(ProtocolValidationError, match="Duplicate key 'request' at line 8"):
        load_protocols()


def test_two_fallbacks_in_one_file_rejected(isolated_user_dirs: Path) -> None:
    _write_protocols(
        _user_file(isolated_user_dirs, "fallbacks.yaml"),
        """
protocols:
  - id: first
    name: First
    match: {}
    request: "01"
    fallback: true
  - id: second
    name: Second
    match: {}
    request: "02"
    fallback: true
""",
    )

    with pytest.raises(ProtocolValidationError):
        load_protocols()


def test_data_dir_rows_load_after_config_dir(isolated_user_dirs: Path) -> None:
    _write_protocols(
        isolated_user_dirs / "data" / "headsetbatt" / "protocols" / "data.yml",
        """
protocols:
  - id: from_data_dir
    name: From data dir
    match:
      manufacturer_contains: "Acme"
    request: "0a0b"
    pre_read: true
""",
    )

    row = load_protocols().table.get("from_data_dir")
    assert row is not None
    assert row.pre_read is True
    assert row.request == b"\x0a\x0b"
