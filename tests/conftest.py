from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: list[str]) -> bytes:
    """Minimal valid PDF: one Helvetica text line per page."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode("ascii"),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for pid, text in zip(page_ids, pages):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode("ascii")
        )
        stream = f"BT /F1 12 Tf 72 720 Td ({_escape(text)}) Tj ET".encode("latin-1")
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for num, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % num + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


class _TextDocument:
    def __init__(self, pages: list[str | None]):
        self._pages = pages
        self.closed = False

    @property
    def page_count(self) -> int:
        return len(self._pages)

    def page_text(self, index: int) -> str:
        text = self._pages[index]
        if text is None:
            raise ValueError("no text layer")
        return text

    def close(self) -> None:
        self.closed = True


class StaticTextBackend:
    """Document backend serving fixed page texts, regardless of file contents."""

    name = "static"

    def __init__(self, pages: list[str | None], *, fail_path: bool = False):
        self.pages = pages
        self.fail_path = fail_path
        self.calls: list[str] = []

    def open_path(self, path: Path) -> _TextDocument:
        self.calls.append("path")
        if self.fail_path:
            raise OSError("handle decoding failed")
        return _TextDocument(self.pages)

    def open_bytes(self, data: bytes) -> _TextDocument:
        self.calls.append("bytes")
        return _TextDocument(self.pages)


@pytest.fixture()
def make_pdf() -> Callable[[list[str]], bytes]:
    return build_pdf


@pytest.fixture()
def static_backend() -> type[StaticTextBackend]:
    return StaticTextBackend
