from __future__ import annotations

from pdfhandler_core.sources.blob import BlobResolver
from pdfhandler_core.sources.data_url import DataUrl, parse_data_url
from pdfhandler_core.sources.http import fetch_http
from pdfhandler_core.sources.local_file import read_local_file

__all__ = [
    "BlobResolver",
    "DataUrl",
    "fetch_http",
    "parse_data_url",
    "read_local_file",
]
