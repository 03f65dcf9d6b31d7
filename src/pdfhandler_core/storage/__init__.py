from __future__ import annotations

from pdfhandler_core.storage.local_cache import DEFAULT_RETENTION, LocalCacheStore, cache_key

__all__ = ["DEFAULT_RETENTION", "LocalCacheStore", "cache_key"]
