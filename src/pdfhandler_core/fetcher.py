from __future__ import annotations

import logging

import httpx

from pdfhandler_core.errors import FetchError, FetchErrorKind
from pdfhandler_core.models import FetchedBlob, Scheme, SourceRequest
from pdfhandler_core.sources.blob import BlobResolver
from pdfhandler_core.sources.data_url import parse_data_url
from pdfhandler_core.sources.http import fetch_http
from pdfhandler_core.sources.local_file import read_local_file

logger = logging.getLogger(__name__)


class ResourceFetcher:
    """
    Uniform byte retrieval for http(s), file, data and blob URLs.

    Never writes to persistent storage. Every successful result carries non-empty bytes.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        blob_resolver: BlobResolver | None = None,
        timeout_s: float = 30.0,
        user_agent: str | None = None,
    ):
        self._owns_client = client is None
        if client is None:
            headers = {"User-Agent": user_agent} if user_agent else None
            client = httpx.AsyncClient(timeout=timeout_s, headers=headers, follow_redirects=True)
        self._client = client
        self._blob_resolver = blob_resolver

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, request: SourceRequest) -> FetchedBlob:
        logger.debug("fetch scheme=%s url=%.200s", request.scheme.value, request.raw_url)
        blob = await self._dispatch(request)
        if not blob.data:
            raise FetchError(FetchErrorKind.EMPTY_CONTENT, f"zero bytes from {request.scheme.value} source")
        return blob

    async def _dispatch(self, request: SourceRequest) -> FetchedBlob:
        scheme = request.scheme
        if scheme in (Scheme.HTTP, Scheme.HTTPS):
            return await fetch_http(self._client, request.raw_url)
        if scheme is Scheme.FILE:
            return await read_local_file(request.raw_url)
        if scheme is Scheme.DATA:
            return self._from_data_url(request.raw_url, source_url=request.raw_url)
        if scheme is Scheme.BLOB:
            return await self._from_blob(request.raw_url)
        raise FetchError(FetchErrorKind.UNSUPPORTED_SCHEME, f"cannot fetch {request.raw_url[:64]!r}")

    @staticmethod
    def _from_data_url(url: str, *, source_url: str) -> FetchedBlob:
        parsed = parse_data_url(url)
        return FetchedBlob(
            data=parsed.data,
            source_url=source_url,
            declared_content_type=parsed.content_type,
            content_disposition=_disposition_from_params(parsed.params),
            declared_size=None,
        )

    async def _from_blob(self, blob_url: str) -> FetchedBlob:
        if self._blob_resolver is None:
            raise FetchError(FetchErrorKind.UNSUPPORTED_SCHEME, "no blob resolver configured")
        try:
            data_url = await self._blob_resolver.resolve(blob_url)
        except FetchError:
            raise
        except Exception as e:  # noqa: BLE001
            raise FetchError(FetchErrorKind.NETWORK, f"blob resolution failed: {e}") from e
        if not isinstance(data_url, str) or data_url[:5].lower() != "data:":
            raise FetchError(FetchErrorKind.MALFORMED_DATA_URL, "blob resolver did not return a data: URL")
        return self._from_data_url(data_url, source_url=blob_url)


def _disposition_from_params(params: dict[str, str]) -> str | None:
    # FileReader-produced data URLs sometimes carry the original name as `name=` / `filename=`.
    name = params.get("filename") or params.get("name")
    if not name:
        return None
    return f'inline; filename="{name}"'
