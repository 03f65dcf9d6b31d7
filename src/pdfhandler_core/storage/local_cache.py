from __future__ import annotations

import logging
import os
import re
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import suppress
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pdfhandler_core.errors import StoreError, StoreErrorKind
from pdfhandler_core.models import CacheEntry, DocumentKind
from pdfhandler_core.util import filename_from_url, safe_stem, sha1_hex

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)

_KEY_RE = re.compile(r"[A-Za-z0-9.-]+")
_SUFFIX_RE = re.compile(r"(\.[A-Za-z0-9]{1,10})?")
# <key>_<created-ms><suffix>; keys never contain "_" so the split is unambiguous.
_ENTRY_RE = re.compile(r"^(?P<key>[A-Za-z0-9.-]+)_(?P<ts>\d+)(?P<suffix>\.[A-Za-z0-9]{1,10})?$")
_TEMP_SUFFIX = ".part"


def cache_key(source_url: str, kind: DocumentKind, filename: str | None = None) -> str:
    """
    Stable cache key for a source URL and document kind.

    The readable prefix comes from `filename` (or the URL's last path segment); the digest
    keeps distinct URLs with the same base name apart.
    """
    stem = safe_stem(filename or filename_from_url(source_url))
    digest = sha1_hex(f"{kind.value}|{source_url}")[:12]
    return f"{stem}-{digest}"


def _to_datetime(ts_ms: int) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)


class LocalCacheStore:
    """
    Time-bounded document cache in an application-private directory.

    No index file is kept: the directory listing plus the timestamp encoded in each filename
    is the whole state. Writes go through a hidden temp file, are verified, and only then
    replace the previous entry for the key.
    """

    def __init__(
        self,
        root: Path,
        *,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], float] = time.time,
    ):
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._retention = retention
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def retention(self) -> timedelta:
        return self._retention

    def _key_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _iter_files(self) -> Iterator[tuple[Path, re.Match[str] | None]]:
        try:
            children = list(self._root.iterdir())
        except FileNotFoundError:
            return
        for child in children:
            yield child, _ENTRY_RE.match(child.name)

    def _files_for(self, key: str) -> list[tuple[int, Path]]:
        found: list[tuple[int, Path]] = []
        for path, m in self._iter_files():
            if m and m.group("key") == key:
                found.append((int(m.group("ts")), path))
        found.sort()
        return found

    def _entry(self, key: str, ts_ms: int, path: Path) -> CacheEntry | None:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return None
        return CacheEntry(key=key, path=path, size_bytes=size, created_at=_to_datetime(ts_ms))

    def get(self, key: str) -> CacheEntry | None:
        for ts_ms, path in reversed(self._files_for(key)):
            entry = self._entry(key, ts_ms, path)
            if entry is not None:
                return entry
        return None

    def entries(self) -> list[CacheEntry]:
        newest: dict[str, tuple[int, Path]] = {}
        for path, m in self._iter_files():
            if not m:
                continue
            ts_ms = int(m.group("ts"))
            key = m.group("key")
            if key not in newest or newest[key][0] < ts_ms:
                newest[key] = (ts_ms, path)
        out = [self._entry(key, ts_ms, path) for key, (ts_ms, path) in sorted(newest.items())]
        return [e for e in out if e is not None]

    def put(self, key: str, data: bytes, *, suffix: str = "") -> CacheEntry:
        if not _KEY_RE.fullmatch(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        if not _SUFFIX_RE.fullmatch(suffix):
            raise ValueError(f"Invalid cache suffix: {suffix!r}")

        self.evict_expired()

        with self._key_lock(key):
            previous = self._files_for(key)
            created_ms = int(self._clock() * 1000)
            if previous and previous[-1][0] >= created_ms:
                created_ms = previous[-1][0] + 1
            final = self._root / f"{key}_{created_ms}{suffix}"
            tmp = self._root / f".{key}.{uuid.uuid4().hex}{_TEMP_SUFFIX}"

            try:
                with tmp.open("wb") as fh:
                    fh.write(data)
                    fh.flush()
                    os.fsync(fh.fileno())
            except OSError as e:
                with suppress(FileNotFoundError):
                    tmp.unlink()
                raise StoreError(StoreErrorKind.WRITE_FAILED, f"{tmp.name}: {e}") from e

            try:
                size = self._verify(tmp, expected=len(data))
                for _, old in previous:
                    with suppress(FileNotFoundError):
                        old.unlink()
                os.replace(tmp, final)
            except OSError as e:
                with suppress(FileNotFoundError):
                    tmp.unlink()
                raise StoreError(StoreErrorKind.WRITE_FAILED, f"{final.name}: {e}") from e
            except StoreError:
                with suppress(FileNotFoundError):
                    tmp.unlink()
                raise

            if not final.is_file():
                raise StoreError(StoreErrorKind.VERIFY_FAILED, f"{final.name} missing after rename")

        logger.info("cached %s (%d bytes)", final.name, size)
        return CacheEntry(key=key, path=final, size_bytes=size, created_at=_to_datetime(created_ms))

    @staticmethod
    def _verify(path: Path, *, expected: int) -> int:
        try:
            size = path.stat().st_size
        except FileNotFoundError as e:
            raise StoreError(StoreErrorKind.VERIFY_FAILED, f"{path.name} missing after write") from e
        if size == 0:
            raise StoreError(StoreErrorKind.EMPTY_AFTER_WRITE, f"{path.name} is empty after write")
        if size != expected:
            raise StoreError(StoreErrorKind.VERIFY_FAILED, f"{path.name}: wrote {size} of {expected} bytes")
        return size

    def evict_expired(self, retention: timedelta | None = None, *, now: datetime | None = None) -> int:
        """
        Delete entries created before `now - retention`. Returns the number of files removed.

        Best-effort: a file that cannot be removed is logged and left for the next sweep.
        """
        retention = retention if retention is not None else self._retention
        now_s = now.timestamp() if now is not None else self._clock()
        cutoff_ms = int((now_s - retention.total_seconds()) * 1000)

        removed = 0
        for path, m in self._iter_files():
            if m:
                expired = int(m.group("ts")) < cutoff_ms
            elif path.name.startswith(".") and path.name.endswith(_TEMP_SUFFIX):
                try:
                    expired = path.stat().st_mtime * 1000 < cutoff_ms
                except FileNotFoundError:
                    continue
            else:
                continue
            if not expired:
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("cache eviction failed for %s: %s", path.name, e)
        if removed:
            logger.info("evicted %d expired cache file(s) from %s", removed, self._root)
        return removed

    def remove(self, key: str) -> int:
        removed = 0
        with self._key_lock(key):
            for _, path in self._files_for(key):
                with suppress(FileNotFoundError):
                    path.unlink()
                    removed += 1
        return removed
