from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from pdfhandler_core.errors import FetchError, FetchErrorKind
from pdfhandler_core.models import FetchedBlob


def local_path(url_or_path: str) -> Path:
    if url_or_path.startswith("/"):
        return Path(url_or_path)
    parsed = urlparse(url_or_path)
    if parsed.scheme.lower() != "file":
        raise ValueError(f"Not a file:// URL: {url_or_path}")
    if parsed.netloc and parsed.netloc != "localhost":
        raise FetchError(FetchErrorKind.NOT_FOUND, f"remote file host {parsed.netloc!r} is not reachable")
    return Path(url2pathname(parsed.path))


async def read_local_file(url_or_path: str) -> FetchedBlob:
    path = local_path(url_or_path)
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
        raise FetchError(FetchErrorKind.NOT_FOUND, str(path)) from e
    except OSError as e:
        raise FetchError(FetchErrorKind.NOT_FOUND, f"{path}: {e.strerror or e}") from e

    content_type, _ = mimetypes.guess_type(path.name)
    return FetchedBlob(
        data=data,
        source_url=url_or_path,
        declared_content_type=content_type,
        declared_size=len(data),
    )
