from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from urllib.parse import unquote, unquote_to_bytes

from pdfhandler_core.errors import FetchError, FetchErrorKind

_DEFAULT_MEDIA_TYPE = "text/plain"
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class DataUrl:
    media_type: str
    params: dict[str, str]
    is_base64: bool
    data: bytes = field(repr=False)

    @property
    def content_type(self) -> str:
        extra = "".join(f";{k}={v}" for k, v in self.params.items())
        return f"{self.media_type}{extra}"


def _malformed(detail: str) -> FetchError:
    return FetchError(FetchErrorKind.MALFORMED_DATA_URL, detail)


def _parse_header(header: str) -> tuple[str, dict[str, str], bool]:
    parts = header.split(";")
    media_type = parts[0].strip().lower()
    if media_type and "/" not in media_type:
        raise _malformed(f"invalid media type {parts[0]!r}")
    params: dict[str, str] = {}
    is_base64 = False
    for raw in parts[1:]:
        token = raw.strip()
        if not token:
            continue
        if token.lower() == "base64":
            is_base64 = True
            continue
        if "=" not in token:
            raise _malformed(f"invalid parameter {token!r}")
        name, value = token.split("=", 1)
        params[name.strip().lower()] = unquote(value.strip())
    if not media_type:
        media_type = _DEFAULT_MEDIA_TYPE
        params.setdefault("charset", "US-ASCII")
    return media_type, params, is_base64


def parse_data_url(url: str) -> DataUrl:
    """
    Parse an RFC 2397 `data:[<mediatype>][;base64],<data>` URL.

    Base64 payloads are decoded strictly after removing whitespace and percent-escapes
    (blob-to-data-URL conversions occasionally percent-encode `+`, `/` and `=`).
    Anything else is percent-decoded into raw bytes.
    """
    if url[:5].lower() != "data:":
        raise _malformed("missing data: prefix")
    rest = url[5:]
    if "," not in rest:
        raise _malformed("missing ',' separator")
    header, payload = rest.split(",", 1)
    media_type, params, is_base64 = _parse_header(header)

    if is_base64:
        cleaned = _WS_RE.sub("", unquote(payload))
        try:
            data = base64.b64decode(cleaned, validate=True)
        except (binascii.Error, ValueError) as e:
            raise _malformed(f"invalid base64 payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)

    return DataUrl(media_type=media_type, params=params, is_base64=is_base64, data=data)
