from pdfhandler_core.bridge import BridgeDispatcher
from pdfhandler_core.classify import classify_content, diagnostic_message, expected_extension
from pdfhandler_core.config import Settings, load_settings
from pdfhandler_core.document import DocumentModel, PyMuPdfBackend, PypdfBackend, backend_for
from pdfhandler_core.errors import (
    ClassificationError,
    FetchError,
    FetchErrorKind,
    OpenError,
    OpenErrorKind,
    PdfHandlerError,
    SessionError,
    SessionErrorKind,
    StoreError,
    StoreErrorKind,
)
from pdfhandler_core.fetcher import ResourceFetcher
from pdfhandler_core.logging_utils import configure_logging
from pdfhandler_core.models import (
    CacheEntry,
    ClassificationResult,
    Diagnostic,
    DocumentKind,
    FetchedBlob,
    MatchLocation,
    Scheme,
    SearchState,
    SourceRequest,
)
from pdfhandler_core.search import Direction, SearchEngine, find_matches
from pdfhandler_core.session import AcquireResult, SearchResult, SessionController, SessionState
from pdfhandler_core.storage.local_cache import LocalCacheStore, cache_key

__all__ = [
    "__version__",
    "AcquireResult",
    "BridgeDispatcher",
    "CacheEntry",
    "ClassificationError",
    "ClassificationResult",
    "Diagnostic",
    "Direction",
    "DocumentKind",
    "DocumentModel",
    "FetchError",
    "FetchErrorKind",
    "FetchedBlob",
    "LocalCacheStore",
    "MatchLocation",
    "OpenError",
    "OpenErrorKind",
    "PdfHandlerError",
    "PyMuPdfBackend",
    "PypdfBackend",
    "ResourceFetcher",
    "Scheme",
    "SearchEngine",
    "SearchResult",
    "SearchState",
    "SessionController",
    "SessionError",
    "SessionErrorKind",
    "SessionState",
    "Settings",
    "SourceRequest",
    "StoreError",
    "StoreErrorKind",
    "backend_for",
    "cache_key",
    "classify_content",
    "configure_logging",
    "diagnostic_message",
    "expected_extension",
    "find_matches",
    "load_settings",
]

__version__ = "0.1.0"
