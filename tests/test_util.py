from __future__ import annotations

import pytest

from pdfhandler_core.util import extension_of, filename_from_disposition, filename_from_url, safe_stem, sha1_hex


def test_sha1_hex() -> None:
    assert sha1_hex("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ('attachment; filename="report.pdf"', "report.pdf"),
        ("inline; filename=plain.pdf", "plain.pdf"),
        ("attachment; filename=\"fallback.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf", "résumé.pdf"),
        ("attachment", None),
        (None, None),
    ],
)
def test_filename_from_disposition(header: str | None, expected: str | None) -> None:
    assert filename_from_disposition(header) == expected


def test_filename_from_url() -> None:
    assert filename_from_url("https://example.com/docs/My%20File.pdf?token=1") == "My File.pdf"
    assert filename_from_url("https://example.com/") is None
    assert filename_from_url("data:application/pdf;base64,AAAA") is None
    assert filename_from_url("file:///tmp/a.pdf") == "a.pdf"


def test_extension_of() -> None:
    assert extension_of("A.PDF") == "pdf"
    assert extension_of("noext") is None
    assert extension_of(None) is None


def test_safe_stem_strips_extension_and_unsafe_characters() -> None:
    assert safe_stem("My File_v2.pdf") == "My-File-v2"
    assert "_" not in safe_stem("a_b_c")
    assert safe_stem(None) == "document"
    assert safe_stem("...") == "document"
