import logging

import httpx
from pydantic import ValidationError

from speech_relay.domain.api_config import ApiConfig, ConfigResponse

logger = logging.getLogger(__name__)

CONFIG_KEYS_PATH = "/api/config/keys"


class ConfigApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def fetch_config(self) -> ConfigResponse:
        try:
            async with self._client() as client:
                response = await client.get(CONFIG_KEYS_PATH)
                response.raise_for_status()
                return ConfigResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            logger.error("Config API HTTP error: %s", exc.response.status_code)
            return ConfigResponse(success=False, error=f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.error("Config fetch failed: %s", exc)
            return ConfigResponse(success=False, error=str(exc))

    async def save_config(self, config: ApiConfig) -> ConfigResponse:
        try:
            async with self._client() as client:
                response = await client.post(CONFIG_KEYS_PATH, json=config.model_dump())
                response.raise_for_status()
                return ConfigResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            logger.error("Config API HTTP error: %s", exc.response.status_code)
            return ConfigResponse(success=False, error=f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.error("Config save failed: %s", exc)
            return ConfigResponse(success=False, error=str(exc))
