"""Runtime settings read from the environment (and an optional .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from headsetbatt.core.errors import ConfigError

DEFAULT_PRODUCT_NAME = "HyperX Cloud II Wireless"
DEFAULT_ENTITY_ID = "sensor.hyperx_headphone_battery"
DEFAULT_INTERVAL_S = 180.0


@dataclass(frozen=True)
class Settings:
    base_url: str
    api_key: str
    product_name: str = DEFAULT_PRODUCT_NAME
    entity_id: str = DEFAULT_ENTITY_ID
    interval_s: float = DEFAULT_INTERVAL_S
    strict: bool = False

    def __repr__(self) -> str:
        return (
            f"Settings(base_url={self.base_url!r}, api_key='***', product_name={self.product_name!r}, "
            f"entity_id={self.entity_id!r}, interval_s={self.interval_s!r}, strict={self.strict!r})"
        )


def _required(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigError(f"Environment variable {name} is not set")
    return value


def _parse_interval(raw: str) -> float:
    try:
        interval = float(raw)
    except ValueError as exc:
        raise ConfigError(f"HEADSETBATT_INTERVAL_S must be a number, got '{raw}'") from exc
    if interval <= 0:
        raise ConfigError("HEADSETBATT_INTERVAL_S must be positive")
    return interval


def _parse_bool(raw: str, *, name: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"", "0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{name} must be boolean true/false, got '{raw}'")


def load_product_name() -> str:
    load_dotenv(find_dotenv(usecwd=True))
    return os.environ.get("HEADSETBATT_PRODUCT", "").strip() or DEFAULT_PRODUCT_NAME


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        base_url=_required("HASS_URL").rstrip("/"),
        api_key=_required("HAS_API_KEY"),
        product_name=load_product_name(),
        entity_id=os.environ.get("HEADSETBATT_ENTITY_ID", "").strip() or DEFAULT_ENTITY_ID,
        interval_s=_parse_interval(os.environ.get("HEADSETBATT_INTERVAL_S", str(DEFAULT_INTERVAL_S))),
        strict=_parse_bool(os.environ.get("HEADSETBATT_STRICT", ""), name="HEADSETBATT_STRICT"),
    )
