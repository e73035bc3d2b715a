"""Home Assistant REST sink."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from headsetbatt.core.errors import SinkError

LOGGER = logging.getLogger(__name__)


class HomeAssistantSink:
    """Writes sensor states through ``POST /api/states/<entity_id>``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._api_key = api_key
        self._session = session or requests.Session()

    def set_state(self, entity_id: str, state: str, attributes: Mapping[str, Any]) -> None:
        url = f"{self.base_url}/api/states/{entity_id}"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"state": state, "attributes": dict(attributes)}
        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=self.timeout_s)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SinkError(f"Home Assistant rejected state for {entity_id}: {exc}") from exc
        LOGGER.debug("Stored %s=%s (HTTP %s)", entity_id, state, response.status_code)
