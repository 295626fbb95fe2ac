"""Shared HTTP call helper for provider clients.

Maps httpx failures onto the error taxonomy so the retry combinator can
tell transient failures from permanent ones.
"""

import logging
from typing import Any, Optional

import httpx

from autotrade.errors import ProviderError, TransientProviderError

logger = logging.getLogger("autotrade.http")

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_DEFAULT_TIMEOUT = 30.0


async def request_json(
    method: str,
    url: str,
    provider: str,
    headers: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
    **kwargs,
) -> Any:
    """Execute one HTTP request and return the decoded JSON body.

    Raises:
        TransientProviderError: transport failure, timeout, 429 or 5xx.
        ProviderError: any other non-2xx response or an undecodable body.
    """
    try:
        async with httpx.AsyncClient() as client:
            resp = await getattr(client, method)(
                url,
                headers=headers or {},
                timeout=timeout,
                **kwargs,
            )
    except httpx.TransportError as exc:
        raise TransientProviderError(provider, f"transport error: {exc}") from exc

    if resp.status_code in _RETRYABLE_STATUS_CODES:
        raise TransientProviderError(
            provider, f"{method.upper()} {url} returned {resp.status_code}",
        )
    if resp.status_code >= 400:
        raise ProviderError(
            provider,
            f"{method.upper()} {url} returned {resp.status_code}: {resp.text[:200]}",
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(provider, f"invalid JSON from {url}") from exc
