"""Shared httpx helpers for OAuth and provider clients."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from .constants import HTTP_TIMEOUT_SECONDS
from .errors import ProviderError

logger = logging.getLogger(__name__)


class HttpClientMixin:
    """Gives a class an `_session()` context manager.

    Uses the injected httpx.AsyncClient when one was passed (tests, shared
    pools), otherwise opens a short-lived client per call.
    """

    _http_client: Optional[httpx.AsyncClient] = None
    timeout: float = HTTP_TIMEOUT_SECONDS

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def raise_for_provider_status(response: httpx.Response, provider: str, action: str) -> None:
    """Raise ProviderError for any non-2xx response."""
    if 200 <= response.status_code < 300:
        return
    if response.status_code == 404:
        logger.debug(f"{provider} {action} returned 404")
    else:
        logger.error(f"{provider} {action} failed: {response.status_code} - {response.text}")
    raise ProviderError(
        response.status_code,
        f"{provider} API error during {action}",
        provider=provider,
        retry_after=parse_retry_after(response) if response.status_code == 429 else None,
    )
