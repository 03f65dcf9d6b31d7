from __future__ import annotations

import io
import logging
import threading
from pathlib import Path
from typing import Protocol

from pdfhandler_core.errors import OpenError, OpenErrorKind
from pdfhandler_core.models import CacheEntry

logger = logging.getLogger(__name__)


class OpenedDocument(Protocol):
    @property
    def page_count(self) -> int: ...

    def page_text(self, index: int) -> str: ...

    def close(self) -> None: ...


class DocumentBackend(Protocol):
    name: str

    def open_path(self, path: Path) -> OpenedDocument: ...

    def open_bytes(self, data: bytes) -> OpenedDocument: ...


class _PypdfDocument:
    def __init__(self, reader) -> None:  # noqa: ANN001
        self._reader = reader
        self._page_count = len(reader.pages)

    @property
    def page_count(self) -> int:
        return self._page_count

    def page_text(self, index: int) -> str:
        return self._reader.pages[index].extract_text() or ""

    def close(self) -> None:
        stream = getattr(self._reader, "stream", None)
        if stream is not None and hasattr(stream, "close"):
            stream.close()


class PypdfBackend:
    name = "pypdf"

    def open_path(self, path: Path) -> OpenedDocument:
        from pypdf import PdfReader

        return _PypdfDocument(PdfReader(str(path)))

    def open_bytes(self, data: bytes) -> OpenedDocument:
        from pypdf import PdfReader

        return _PypdfDocument(PdfReader(io.BytesIO(data)))


class _FitzDocument:
    def __init__(self, doc) -> None:  # noqa: ANN001
        self._doc = doc

    @property
    def page_count(self) -> int:
        return int(self._doc.page_count)

    def page_text(self, index: int) -> str:
        return self._doc.load_page(index).get_text("text") or ""

    def close(self) -> None:
        self._doc.close()


class PyMuPdfBackend:
    """Uses PyMuPDF (fitz), which is more tolerant of damaged cross-reference tables."""

    name = "pymupdf"

    def open_path(self, path: Path) -> OpenedDocument:
        import fitz  # type: ignore[import-not-found]

        return _FitzDocument(fitz.open(str(path), filetype="pdf"))

    def open_bytes(self, data: bytes) -> OpenedDocument:
        import fitz  # type: ignore[import-not-found]

        return _FitzDocument(fitz.open(stream=data, filetype="pdf"))


def backend_for(name: str) -> DocumentBackend:
    if name == PypdfBackend.name:
        return PypdfBackend()
    if name == PyMuPdfBackend.name:
        return PyMuPdfBackend()
    raise ValueError(f"Unknown document backend: {name!r}")


def _open_with_fallback(entry: CacheEntry, backend: DocumentBackend) -> OpenedDocument:
    try:
        doc = backend.open_path(entry.path)
        _ = doc.page_count
        return doc
    except Exception as e:  # noqa: BLE001
        logger.info("open by path failed for %s (%s); retrying from bytes", entry.path.name, e)

    try:
        data = entry.path.read_bytes()
    except OSError as e:
        raise OpenError(OpenErrorKind.UNREADABLE, f"{entry.path.name}: {e}") from e
    try:
        doc = backend.open_bytes(data)
        _ = doc.page_count
        return doc
    except Exception as e:  # noqa: BLE001
        raise OpenError(OpenErrorKind.UNREADABLE, f"{backend.name} could not parse {entry.path.name}: {e}") from e


class DocumentModel:
    """
    Read-only view over a cached, validated document: page count and per-page plain text.

    Page text is extracted lazily and memoised. `page_text` returns None for pages without
    extractable text (scanned images, blank pages).
    """

    def __init__(self, entry: CacheEntry, doc: OpenedDocument, *, backend_name: str = ""):
        self.entry = entry
        self.backend_name = backend_name
        self._doc: OpenedDocument | None = doc
        self._page_count = doc.page_count
        self._texts: dict[int, str | None] = {}
        self._lock = threading.Lock()

    @classmethod
    def open(cls, entry: CacheEntry, backend: DocumentBackend) -> DocumentModel:
        doc = _open_with_fallback(entry, backend)
        if doc.page_count <= 0:
            doc.close()
            raise OpenError(OpenErrorKind.NO_PAGES, f"{entry.path.name} has no pages")
        logger.debug("opened %s with %s (%d pages)", entry.path.name, backend.name, doc.page_count)
        return cls(entry, doc, backend_name=backend.name)

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def closed(self) -> bool:
        return self._doc is None

    def page_text(self, index: int) -> str | None:
        if not 0 <= index < self._page_count:
            raise IndexError(f"page index {index} out of range (0..{self._page_count - 1})")
        with self._lock:
            if index in self._texts:
                return self._texts[index]
            if self._doc is None:
                raise RuntimeError("DocumentModel is closed")
            try:
                text: str | None = self._doc.page_text(index)
            except Exception as e:  # noqa: BLE001
                logger.warning("text extraction failed for page %d of %s: %s", index, self.entry.path.name, e)
                text = None
            if text is not None and not text.strip():
                text = None
            self._texts[index] = text
            return text

    def close(self) -> None:
        with self._lock:
            if self._doc is None:
                return
            doc, self._doc = self._doc, None
            self._texts.clear()
        doc.close()
