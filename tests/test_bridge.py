from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from pdfhandler_core.bridge import BridgeDispatcher
from pdfhandler_core.document import PypdfBackend
from pdfhandler_core.fetcher import ResourceFetcher
from pdfhandler_core.session import SessionController
from pdfhandler_core.storage.local_cache import LocalCacheStore


def _dispatcher(tmp_path: Path, pdf: bytes) -> BridgeDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=pdf)))
    controller = SessionController(
        fetcher=ResourceFetcher(client=client),
        store=LocalCacheStore(tmp_path),
        backend=PypdfBackend(),
    )
    return BridgeDispatcher(controller)


def test_commands_resolve_by_request_id(tmp_path: Path, make_pdf) -> None:  # noqa: ANN001
    dispatcher = _dispatcher(tmp_path, make_pdf(["needle here", "needle there"]))

    async def run():  # noqa: ANN202
        opened = dispatcher.submit("req-1", "downloadFile", ["https://example.com/doc.pdf"])
        assert dispatcher.pending() == ["req-1"]
        opened_payload = await opened
        searched = await dispatcher.submit("req-2", "search", ["needle"])
        moved = await dispatcher.submit("req-3", "navigate", ["backward"])
        closed = await dispatcher.submit("req-4", "close")
        return opened_payload, searched, moved, closed

    opened, searched, moved, closed = asyncio.run(run())
    assert opened["ok"] is True
    assert opened["kind"] == "pdf"
    assert searched["match_count"] == 2
    assert searched["current_index"] == 0
    assert moved["current_index"] == 1
    assert moved["page_index"] == 1
    assert closed == {"ok": True}
    assert dispatcher.pending() == []


def test_rejects_unknown_action_and_duplicate_request_id(tmp_path: Path, make_pdf) -> None:  # noqa: ANN001
    dispatcher = _dispatcher(tmp_path, make_pdf(["x"]))

    async def run() -> None:
        with pytest.raises(ValueError):
            dispatcher.submit("r", "print", [])
        first = dispatcher.submit("dup", "acquireAndOpen", ["https://example.com/x.pdf"])
        with pytest.raises(ValueError):
            dispatcher.submit("dup", "search", ["x"])
        await first

    asyncio.run(run())
