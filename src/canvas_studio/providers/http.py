from __future__ import annotations

import logging

import httpx

from canvas_studio.errors import ProviderError, timeout_error, upstream_error

logger = logging.getLogger(__name__)


def async_client(timeout: float, transport: httpx.AsyncBaseTransport | None = None, **kwargs) -> httpx.AsyncClient:
    # Tests pass an httpx.MockTransport here.
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport, **kwargs)


def error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(data, dict):
        for key in ("message", "detail", "name", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(str(e) for e in errors)
    return resp.text[:500]


def raise_for_upstream(provider: str, resp: httpx.Response) -> None:
    if resp.is_success:
        return
    message = error_message(resp)
    logger.warning("%s returned HTTP %s: %s", provider, resp.status_code, message)
    raise upstream_error(provider, resp.status_code, message)


async def download_image(
    url: str,
    provider: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bytes, str]:
    """Fetches a provider-hosted output URL and returns (bytes, mime type)."""
    try:
        async with async_client(timeout, transport, follow_redirects=True) as client:
            resp = await client.get(url)
    except httpx.TimeoutException as exc:
        raise timeout_error(provider, timeout) from exc
    except httpx.RequestError as exc:
        raise ProviderError(provider, "API_ERROR", f"failed to download output: {exc}", 502) from exc
    raise_for_upstream(provider, resp)
    mime = resp.headers.get("content-type", "image/png").split(";")[0].strip() or "image/png"
    return resp.content, mime
