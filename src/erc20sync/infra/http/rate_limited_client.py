import asyncio
import time

import httpx

from erc20sync.exceptions import ExternalServiceError

# Provider throttling statuses
_THROTTLED = {408, 425, 429}


class RateLimitedClient:
    """Async JSON-over-HTTP client with interval-based rate limiting.

    Transport failures and non-2xx responses are raised as ExternalServiceError
    so the retry policy can treat every provider hiccup the same way.
    """

    def __init__(self, rate_per_second: float = 10.0, timeout: float = 30.0) -> None:
        self._min_interval = 1.0 / rate_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(timeout=timeout)

    async def _wait_for_slot(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def post_json(self, url: str, payload: dict | list) -> dict | list:
        await self._wait_for_slot()
        try:
            resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"HTTP transport error: {e.__class__.__name__}: {e}") from e

        if resp.status_code in _THROTTLED:
            raise ExternalServiceError(f"Rate limited by provider (HTTP {resp.status_code})")
        if resp.status_code >= 400:
            raise ExternalServiceError(f"Provider returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"Provider returned invalid JSON: {resp.text[:200]}") from e

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
