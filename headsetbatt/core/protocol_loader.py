"""Protocol table loading and validation for YAML-based headset protocol rows."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from headsetbatt.core.errors import ProtocolLoadError, ProtocolValidationError
from headsetbatt.core.model import (
    DEFAULT_BATTERY_OFFSET,
    READ_BUFFER_SIZE,
    WRITE_BUFFER_SIZE,
    BatteryQueryDescriptor,
)
from headsetbatt.core.protocol_table import ProtocolTable

_HEX_RE = re.compile(r"^[0-9a-f]+$")
LOGGER = logging.getLogger(__name__)


def _resolvers_without_bool() -> dict[str, list[tuple[str, Any]]]:
    # "on"/"off"/"yes"/"no" stay strings; booleans are normalised per field.
    return {
        first_char: [(tag, regexp) for tag, regexp in entries if tag != "tag:yaml.org,2002:bool"]
        for first_char, entries in yaml.SafeLoader.yaml_implicit_resolvers.items()
    }


class ProtocolYamlLoader(yaml.SafeLoader):
    """Safe YAML loader for protocol files: duplicate keys are an error."""

    yaml_implicit_resolvers = _resolvers_without_bool()

    def construct_unique_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[str, Any]:
        mapping: dict[str, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise ProtocolValidationError(
                    f"Duplicate key '{key}' at line {key_node.start_mark.line + 1}"
                )
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


ProtocolYamlLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    ProtocolYamlLoader.construct_unique_mapping,
)


@dataclass(frozen=True)
class LoadedProtocols:
    table: ProtocolTable
    warnings: tuple[str, ...]


@lru_cache(maxsize=1)
def _protocol_validator() -> Any:
    schema = json.loads(
        resources.files("headsetbatt.schemas").joinpath("protocol.schema.json").read_text(encoding="utf-8")
    )
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _protocol_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "headsetbatt/protocols", xdg_data / "headsetbatt/protocols"


def _parse_protocol_file(path: Path | Traversable) -> dict[str, Any]:
    try:
        document = yaml.load(path.read_text(encoding="utf-8"), Loader=ProtocolYamlLoader)
    except OSError as exc:
        raise ProtocolLoadError(f"Could not read protocol file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProtocolValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ProtocolValidationError(f"Protocol file {path} must contain a mapping at root")
    return document


def _normalize_hex(value: str, *, context: str) -> bytes:
    normalized = value.strip().lower().replace(" ", "")
    if len(normalized) == 0:
        raise ProtocolValidationError(f"{context} must not be empty")
    if len(normalized) % 2 != 0:
        raise ProtocolValidationError(f"{context} must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise ProtocolValidationError(f"{context} must contain only [0-9a-f]")
    payload = bytes.fromhex(normalized)
    if len(payload) > WRITE_BUFFER_SIZE:
        raise ProtocolValidationError(
            f"{context} exceeds the {WRITE_BUFFER_SIZE}-byte write buffer"
        )
    return payload


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ProtocolValidationError(f"{context} must be boolean true/false")


def _normalize_offset(value: Any, *, context: str) -> int:
    offset = int(value)
    if not 0 <= offset < READ_BUFFER_SIZE:
        raise ProtocolValidationError(
            f"{context} must address the {READ_BUFFER_SIZE}-byte response (0-{READ_BUFFER_SIZE - 1})"
        )
    return offset


def _build_row(doc: dict[str, Any]) -> BatteryQueryDescriptor:
    row_id = doc["id"]
    return BatteryQueryDescriptor(
        id=row_id,
        name=doc["name"],
        manufacturer_contains=doc["match"].get("manufacturer_contains", ""),
        product_contains=doc["match"].get("product_contains", ""),
        request=_normalize_hex(doc["request"], context=f"{row_id}.request"),
        battery_offset=_normalize_offset(
            doc.get("battery_offset", DEFAULT_BATTERY_OFFSET),
            context=f"{row_id}.battery_offset",
        ),
        pre_read=_normalize_bool(doc.get("pre_read", False), context=f"{row_id}.pre_read"),
        fallback=_normalize_bool(doc.get("fallback", False), context=f"{row_id}.fallback"),
    )


def _build_rows(doc: dict[str, Any], source: Path | Traversable) -> list[BatteryQueryDescriptor]:
    validator = _protocol_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProtocolValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    rows = [_build_row(item) for item in doc["protocols"]]
    fallbacks = [row.id for row in rows if row.fallback]
    if len(fallbacks) > 1:
        raise ProtocolValidationError(
            f"Protocol file {source} declares more than one fallback row: {', '.join(fallbacks)}"
        )
    return rows


def _iter_packaged_protocol_paths() -> list[Traversable]:
    protocol_root = resources.files("headsetbatt.protocols")
    return [item for item in protocol_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_protocol_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _protocol_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def _merge_user_row(rows: list[BatteryQueryDescriptor], row: BatteryQueryDescriptor, warnings: list[str]) -> None:
    for index, existing in enumerate(rows):
        if existing.id == row.id:
            warning = f"User protocol '{row.id}' overrides packaged protocol"
            LOGGER.warning(warning)
            warnings.append(warning)
            rows[index] = row
            return

    if row.fallback:
        for index, existing in enumerate(rows):
            if existing.fallback:
                warning = f"User protocol '{row.id}' replaces fallback protocol '{existing.id}'"
                LOGGER.warning(warning)
                warnings.append(warning)
                del rows[index]
                break
    rows.append(row)


def load_protocols() -> LoadedProtocols:
    rows: list[BatteryQueryDescriptor] = []
    warnings: list[str] = []

    for path in sorted(_iter_packaged_protocol_paths(), key=lambda p: p.name):
        doc = _parse_protocol_file(path)
        rows.extend(_build_rows(doc, path))

    for path in _iter_user_protocol_paths():
        doc = _parse_protocol_file(path)
        for row in _build_rows(doc, path):
            _merge_user_row(rows, row, warnings)

    return LoadedProtocols(table=ProtocolTable(rows), warnings=tuple(warnings))
