from __future__ import annotations

import logging

import httpx

from pdfhandler_core.errors import FetchError, FetchErrorKind
from pdfhandler_core.models import FetchedBlob

logger = logging.getLogger(__name__)


def _declared_size(headers: httpx.Headers) -> int | None:
    # httpx transparently decodes gzip/deflate, so Content-Length would not match the body.
    if headers.get("content-encoding"):
        return None
    raw = (headers.get("content-length") or "").strip()
    return int(raw) if raw.isdigit() else None


async def fetch_http(client: httpx.AsyncClient, url: str) -> FetchedBlob:
    try:
        r = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as e:
        raise FetchError(FetchErrorKind.NETWORK, f"{type(e).__name__}: {e}") from e

    if not r.is_success:
        raise FetchError(FetchErrorKind.NETWORK, f"HTTP {r.status_code} for {url}")

    logger.debug("fetched %s (%d bytes, %s)", url, len(r.content), r.headers.get("content-type"))
    return FetchedBlob(
        data=r.content,
        source_url=url,
        declared_content_type=r.headers.get("content-type"),
        content_disposition=r.headers.get("content-disposition"),
        declared_size=_declared_size(r.headers),
    )
