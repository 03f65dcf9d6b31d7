from __future__ import annotations

import hashlib
import re
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

_UNSAFE_STEM_RE = re.compile(r"[^A-Za-z0-9.-]+")


def sha1_hex(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()  # noqa: S324


def filename_from_disposition(disposition: str | None) -> str | None:
    """Return the filename component of a Content-Disposition header."""
    if not disposition:
        return None
    parts = [segment.strip() for segment in disposition.split(";") if segment.strip()]
    plain: str | None = None
    for part in parts:
        low = part.lower()
        if low.startswith("filename*="):
            value = part.split("=", 1)[1].strip()
            _, _, encoded = value.partition("''")
            candidate = unquote(encoded or value).strip('"')
            if candidate:
                # RFC 6266: the extended form wins over the plain one.
                return candidate
        elif low.startswith("filename="):
            candidate = part.split("=", 1)[1].strip().strip('"')
            if candidate:
                plain = candidate
    return plain


def filename_from_url(url: str) -> str | None:
    """Last path segment of a hierarchical URL, percent-decoded."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme in {"data", "blob"}:
        return None
    name = PurePosixPath(unquote(parsed.path or "")).name
    return name or None


def extension_of(filename: str | None) -> str | None:
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1].strip().lower()
    return ext or None


def safe_stem(filename: str | None, *, default: str = "document", max_len: int = 48) -> str:
    """Filesystem-safe base name without extension; never contains underscores."""
    stem = filename or ""
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    stem = _UNSAFE_STEM_RE.sub("-", stem).strip("-.")
    stem = stem[:max_len].strip("-.")
    return stem or default
