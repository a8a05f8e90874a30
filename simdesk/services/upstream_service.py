"""
HTTP client for the mirrored upstream data source.
"""

from typing import Optional

import httpx
from loguru import logger

from simdesk.services.cache_service import (
    UpstreamResponse, UpstreamTimeout, UpstreamUnavailable, Validators,
)


class UpstreamClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    async def fetch(self, path: str, validators: Validators, params: Optional[dict] = None) -> UpstreamResponse:
        """
        Conditional GET of ``path``. A 304 comes back as ``not_modified``;
        any transport error or non-2xx status raises ``UpstreamUnavailable``.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json", **validators.as_headers()}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Upstream timed out: {url}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Upstream request to {url} failed: {e}")
            raise UpstreamUnavailable(f"Upstream request failed: {url}") from e

        if response.status_code == 304:
            return UpstreamResponse(not_modified=True)

        if not response.is_success:
            logger.warning(f"Upstream {url} answered {response.status_code}")
            raise UpstreamUnavailable(f"Upstream answered {response.status_code}: {url}")

        try:
            body = response.json()
        except ValueError:
            body = response.text

        logger.info(f"Upstream fetched {url} ({len(response.content)} bytes)")
        return UpstreamResponse(
            not_modified=False,
            body=body,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
        )
