from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from dailyfx.providers.http_client import HTTPClient, HTTPClientConfig, HTTPClientError

logger = logging.getLogger(__name__)


class NrbAPIError(RuntimeError):
    """Raised when the Nepal Rastra Bank forex API returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class NrbClientConfig:
    """Configuration parameters for the NRB client."""

    def __init__(self, base_url: str, timeout: float, per_page: int = 100) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.per_page = per_page


class NrbClient:
    """HTTP client for the NRB forex API built on the shared wrapper."""

    def __init__(self, config: NrbClientConfig, client: HTTPClient | None = None) -> None:
        self._config = config
        self._client = client or HTTPClient(
            HTTPClientConfig(base_url=config.base_url, timeout=config.timeout)
        )

    @property
    def per_page(self) -> int:
        return self._config.per_page

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        try:
            payload = self._client.get(path, params=params)
        except HTTPClientError as exc:
            raise NrbAPIError(str(exc), status_code=exc.status_code) from exc

        data = payload.get("data")
        if not isinstance(data, dict):
            raise NrbAPIError("NRB API response missing 'data' object")
        if not isinstance(data.get("payload"), list):
            raise NrbAPIError("NRB API response missing 'data.payload' list")

        return payload
