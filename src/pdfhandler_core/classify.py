from __future__ import annotations

from pdfhandler_core.models import ClassificationResult, Diagnostic, DocumentKind, FetchedBlob
from pdfhandler_core.util import extension_of, filename_from_disposition, filename_from_url

PDF_SIGNATURE = b"%PDF"
SNIFF_WINDOW = 20
EOF_WINDOW = 1024

_MARKUP_TELLTALES = (b"<?xml", b"<html", b"<!doctype html")
_BOMS = (b"\xef\xbb\xbf", b"\xff\xfe", b"\xfe\xff")

_CONTENT_TYPE_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/x-pdf": "pdf",
    "text/html": "html",
    "application/xhtml+xml": "html",
    "text/plain": "txt",
}

_MESSAGES = {
    Diagnostic.EMPTY: "The downloaded file is empty.",
    Diagnostic.HTML_MASQUERADE: (
        "The server returned a web page instead of the document; it likely requires authentication."
    ),
    Diagnostic.TRUNCATED: "The document appears to be incomplete (download truncated).",
    Diagnostic.UNKNOWN_FORMAT: "The downloaded file is not a valid PDF document.",
}


def expected_extension(blob: FetchedBlob) -> str | None:
    """
    Best guess at what the caller expects to receive.

    Content-Disposition filename first, then the URL path, then the declared content type.
    """
    ext = extension_of(filename_from_disposition(blob.content_disposition))
    if ext:
        return ext
    ext = extension_of(filename_from_url(blob.source_url))
    if ext:
        return ext
    ct = (blob.declared_content_type or "").split(";", 1)[0].strip().lower()
    return _CONTENT_TYPE_EXTENSIONS.get(ct)


def _looks_like_markup(head: bytes) -> bool:
    for bom in _BOMS:
        if head.startswith(bom):
            head = head[len(bom) :]
            break
    probe = head.lstrip()[:SNIFF_WINDOW].lower()
    return any(marker in probe for marker in _MARKUP_TELLTALES)


def _is_truncated(blob: FetchedBlob) -> bool:
    if blob.declared_size is not None and blob.declared_size > len(blob.data):
        return True
    return b"%%EOF" not in blob.data[-EOF_WINDOW:]


def classify_content(blob: FetchedBlob, expected_extension_hint: str | None) -> ClassificationResult:
    data = blob.data
    if not data:
        return ClassificationResult(kind=DocumentKind.OPAQUE_BINARY, diagnostic=Diagnostic.EMPTY)

    if data.startswith(PDF_SIGNATURE):
        if _is_truncated(blob):
            return ClassificationResult(kind=DocumentKind.PDF, diagnostic=Diagnostic.TRUNCATED)
        return ClassificationResult(kind=DocumentKind.PDF)

    hint = (expected_extension_hint or "").lstrip(".").lower()
    if hint == "pdf":
        # Login walls and error pages served in place of the file.
        if _looks_like_markup(data[:256]):
            return ClassificationResult(kind=DocumentKind.OPAQUE_BINARY, diagnostic=Diagnostic.HTML_MASQUERADE)
        return ClassificationResult(kind=DocumentKind.OPAQUE_BINARY, diagnostic=Diagnostic.UNKNOWN_FORMAT)

    return ClassificationResult(kind=DocumentKind.OPAQUE_BINARY)


def diagnostic_message(diagnostic: Diagnostic) -> str:
    return _MESSAGES[diagnostic]
