from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from pdfhandler_core.errors import StoreError, StoreErrorKind
from pdfhandler_core.models import DocumentKind
from pdfhandler_core.storage.local_cache import LocalCacheStore, cache_key


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def _live_files(root: Path) -> list[Path]:
    return sorted(p for p in root.iterdir() if not p.name.startswith("."))


def test_cache_key_is_stable_and_distinguishes_urls() -> None:
    a = cache_key("https://example.com/a/report.pdf", DocumentKind.PDF)
    b = cache_key("https://example.com/a/report.pdf", DocumentKind.PDF)
    c = cache_key("https://example.com/b/report.pdf", DocumentKind.PDF)
    d = cache_key("https://example.com/a/report.pdf", DocumentKind.OPAQUE_BINARY)
    assert a == b
    assert a.startswith("report-")
    assert len({a, c, d}) == 3
    assert "_" not in cache_key("https://example.com/my_file.pdf", DocumentKind.PDF)


def test_put_then_get_returns_same_size(tmp_path: Path) -> None:
    store = LocalCacheStore(tmp_path)
    entry = store.put("report-abc", b"%PDF-1.4 data", suffix=".pdf")
    got = store.get("report-abc")
    assert got == entry
    assert got.size_bytes == len(b"%PDF-1.4 data")
    assert got.path.read_bytes() == b"%PDF-1.4 data"
    assert got.path.name.startswith("report-abc_")
    assert got.path.suffix == ".pdf"


def test_get_missing_key_returns_none(tmp_path: Path) -> None:
    assert LocalCacheStore(tmp_path).get("nothing-here") is None


def test_put_empty_bytes_fails_and_leaves_nothing(tmp_path: Path) -> None:
    store = LocalCacheStore(tmp_path)
    with pytest.raises(StoreError) as exc:
        store.put("empty", b"")
    assert exc.value.kind is StoreErrorKind.EMPTY_AFTER_WRITE
    assert list(tmp_path.iterdir()) == []
    assert store.get("empty") is None


def test_put_overwrites_previous_entry(tmp_path: Path) -> None:
    clock = FakeClock()
    store = LocalCacheStore(tmp_path, clock=clock)
    first = store.put("doc", b"first version")
    second = store.put("doc", b"second")  # same clock tick: timestamp still advances
    assert second.created_at > first.created_at
    assert not first.path.exists()
    assert _live_files(tmp_path) == [second.path]
    assert store.get("doc").path.read_bytes() == b"second"


def test_put_rejects_unsafe_keys(tmp_path: Path) -> None:
    store = LocalCacheStore(tmp_path)
    with pytest.raises(ValueError):
        store.put("../escape", b"x")
    with pytest.raises(ValueError):
        store.put("has_underscore", b"x")


def test_evict_expired_removes_old_entries_and_is_idempotent(tmp_path: Path) -> None:
    clock = FakeClock()
    store = LocalCacheStore(tmp_path, clock=clock)
    old = store.put("old", b"old bytes")
    clock.now += 8 * 24 * 60 * 60
    fresh = store.put("fresh", b"fresh bytes")  # the sweep before this write evicts "old"

    assert not old.path.exists()
    assert fresh.path.exists()
    assert store.evict_expired() == 0
    assert store.evict_expired() == 0


def test_evict_expired_with_explicit_retention_and_now(tmp_path: Path) -> None:
    clock = FakeClock()
    store = LocalCacheStore(tmp_path, clock=clock)
    store.put("a", b"aaa")
    clock.now += 3600
    store.put("b", b"bbb")

    now = datetime.fromtimestamp(clock.now, tz=timezone.utc)
    assert store.evict_expired(timedelta(minutes=30), now=now) == 1
    assert store.get("a") is None
    assert store.get("b") is not None
    assert store.evict_expired(timedelta(minutes=30), now=now) == 0


def test_evict_ignores_foreign_files(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("keep me")
    (tmp_path / f"legacy_{1_000}.pdf").write_bytes(b"ancient")
    store = LocalCacheStore(tmp_path)
    assert store.evict_expired() == 1
    assert (tmp_path / "notes.txt").exists()


def test_evict_skips_undeletable_file_and_keeps_going(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    clock = FakeClock()
    store = LocalCacheStore(tmp_path, clock=clock)
    stuck = store.put("stuck", b"locked bytes")
    gone = store.put("gone", b"old bytes")
    clock.now += 8 * 24 * 60 * 60

    real_unlink = Path.unlink

    def unlink(self: Path, missing_ok: bool = False) -> None:
        if self == stuck.path:
            raise PermissionError(13, "Permission denied", str(self))
        real_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", unlink)

    with caplog.at_level(logging.WARNING, logger="pdfhandler_core.storage.local_cache"):
        assert store.evict_expired() == 1
        fresh = store.put("fresh", b"fresh bytes")

    assert stuck.path.exists()
    assert not gone.path.exists()
    assert store.get("fresh") == fresh
    assert any(
        r.levelno == logging.WARNING and "cache eviction failed" in r.getMessage() for r in caplog.records
    )


def test_entries_lists_newest_per_key(tmp_path: Path) -> None:
    store = LocalCacheStore(tmp_path)
    store.put("a", b"1")
    store.put("b", b"22")
    assert [(e.key, e.size_bytes) for e in store.entries()] == [("a", 1), ("b", 2)]
    assert store.remove("a") == 1
    assert [e.key for e in store.entries()] == ["b"]


def test_concurrent_puts_on_same_key_leave_one_intact_file(tmp_path: Path) -> None:
    store = LocalCacheStore(tmp_path)
    payload_a = b"A" * 2_000_000
    payload_b = b"B" * 1_500_000
    barrier = threading.Barrier(2)
    errors: list[BaseException] = []

    def writer(data: bytes) -> None:
        barrier.wait()
        try:
            store.put("race", data, suffix=".pdf")
        except BaseException as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(p,)) for p in (payload_a, payload_b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    files = _live_files(tmp_path)
    assert len(files) == 1
    assert files[0].read_bytes() in (payload_a, payload_b)
    assert [p for p in tmp_path.iterdir() if p.name.endswith(".part")] == []
    entry = store.get("race")
    assert entry is not None and entry.size_bytes in (len(payload_a), len(payload_b))


def test_created_at_comes_from_filename_timestamp(tmp_path: Path) -> None:
    clock = FakeClock(start=1_700_000_000.5)
    entry = LocalCacheStore(tmp_path, clock=clock).put("ts", b"x")
    assert entry.path.name == "ts_1700000000500"
    assert entry.created_at == datetime.fromtimestamp(1_700_000_000.5, tz=timezone.utc)
