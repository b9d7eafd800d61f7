"""Async HTTP fetching shared by discovery and page resolution."""

from __future__ import annotations

import httpx

from markgrab.errors import FetchError
from markgrab.scraper.retry import RETRYABLE_HTTP_ERRORS, describe_error, with_retry


def create_client(*, timeout: float, user_agent: str) -> httpx.AsyncClient:
    """Return the ``AsyncClient`` one scrape run shares across all its pages.

    Timeouts are left entirely to httpx; there is no deadline layer above it.
    """
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        timeout=timeout,
        follow_redirects=True,
    )


def _status_error(url: str, response: httpx.Response) -> FetchError:
    return FetchError(
        f"HTTP {response.status_code}: {response.reason_phrase}",
        url=url,
        status_code=response.status_code,
    )


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_retries: int = 3,
    retry_delay_ms: int = 1000,
    headers: dict[str, str] | None = None,
) -> str:
    """GET *url* and return the decoded body.

    Transient failures (timeouts, refused/reset connections, DNS errors and
    HTTP 429/5xx) are retried with exponential backoff; anything else fails
    on the first attempt.

    Raises:
        FetchError: On a non-success status or a transport failure, once
            retries are exhausted or the failure is not retryable.
    """

    async def _get() -> str:
        response = await client.get(url, headers=headers)
        if not response.is_success:
            raise _status_error(url, response)
        return response.text

    try:
        return await with_retry(_get, max_retries, retry_delay_ms, RETRYABLE_HTTP_ERRORS)
    except httpx.HTTPError as exc:
        raise FetchError(describe_error(exc), url=url) from exc
