from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse


class Scheme(str, Enum):
    HTTP = "http"
    HTTPS = "https"
    BLOB = "blob"
    DATA = "data"
    FILE = "file"
    OTHER = "other"


class DocumentKind(str, Enum):
    PDF = "pdf"
    OPAQUE_BINARY = "opaqueBinary"


class Diagnostic(str, Enum):
    EMPTY = "empty"
    HTML_MASQUERADE = "htmlMasquerade"
    TRUNCATED = "truncated"
    UNKNOWN_FORMAT = "unknownFormat"


def scheme_of(url: str) -> Scheme:
    if url.startswith("/"):
        return Scheme.FILE
    try:
        raw = urlparse(url).scheme.lower()
    except ValueError:
        return Scheme.OTHER
    try:
        return Scheme(raw)
    except ValueError:
        return Scheme.OTHER


@dataclass(frozen=True)
class SourceRequest:
    raw_url: str
    scheme: Scheme

    @classmethod
    def from_url(cls, url: str) -> SourceRequest:
        url = (url or "").strip()
        return cls(raw_url=url, scheme=scheme_of(url))


@dataclass(frozen=True)
class FetchedBlob:
    data: bytes = field(repr=False)
    source_url: str
    declared_content_type: str | None = None
    content_disposition: str | None = None
    declared_size: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ClassificationResult:
    kind: DocumentKind
    diagnostic: Diagnostic | None = None

    @property
    def is_failure(self) -> bool:
        # Truncation is advisory; the document backend decides whether the file is usable.
        return self.diagnostic is not None and self.diagnostic is not Diagnostic.TRUNCATED


@dataclass(frozen=True)
class CacheEntry:
    key: str
    path: Path
    size_bytes: int
    created_at: datetime


@dataclass(frozen=True)
class MatchLocation:
    page_index: int  # 0-based
    range_start: int
    range_length: int


@dataclass(frozen=True)
class SearchState:
    query: str
    matches: tuple[MatchLocation, ...] = ()
    current_index: int = -1

    def __post_init__(self) -> None:
        if self.current_index != -1 and not 0 <= self.current_index < len(self.matches):
            raise ValueError(f"current_index {self.current_index} out of range for {len(self.matches)} matches")

    @property
    def match_count(self) -> int:
        return len(self.matches)

    @property
    def current(self) -> MatchLocation | None:
        if self.current_index < 0:
            return None
        return self.matches[self.current_index]
