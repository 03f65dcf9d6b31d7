from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pdfhandler_core.models import ClassificationResult


class FetchErrorKind(str, Enum):
    NETWORK = "network"
    NOT_FOUND = "notFound"
    UNSUPPORTED_SCHEME = "unsupportedScheme"
    MALFORMED_DATA_URL = "malformedDataURL"
    EMPTY_CONTENT = "emptyContent"


class StoreErrorKind(str, Enum):
    EMPTY_AFTER_WRITE = "emptyAfterWrite"
    WRITE_FAILED = "writeFailed"
    VERIFY_FAILED = "verifyFailed"


class OpenErrorKind(str, Enum):
    NO_PAGES = "noPages"
    UNREADABLE = "unreadable"


class SessionErrorKind(str, Enum):
    NOT_READY = "notReady"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


class PdfHandlerError(RuntimeError):
    """Base class for every error raised by the acquisition core."""

    def __init__(self, kind: Enum, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def kind_value(self) -> str:
        return str(self.kind.value)


class FetchError(PdfHandlerError):
    kind: FetchErrorKind


class StoreError(PdfHandlerError):
    kind: StoreErrorKind


class OpenError(PdfHandlerError):
    kind: OpenErrorKind


class SessionError(PdfHandlerError):
    kind: SessionErrorKind


class ClassificationError(PdfHandlerError):
    """Raised by the session pipeline when classification rejects the payload."""

    def __init__(self, result: ClassificationResult, detail: str | None = None):
        if result.diagnostic is None:
            raise ValueError("ClassificationError requires a diagnostic")
        self.result = result
        super().__init__(result.diagnostic, detail)
