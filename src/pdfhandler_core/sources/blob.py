from __future__ import annotations

from typing import Protocol


class BlobResolver(Protocol):
    """
    Host capability that turns a `blob:` reference into a `data:` URL.

    `blob:` URLs only resolve inside the document context that created them, so the host
    (typically by running script in the originating webview) performs the conversion.
    """

    async def resolve(self, blob_url: str) -> str: ...
