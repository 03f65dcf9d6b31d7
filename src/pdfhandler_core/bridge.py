from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pdfhandler_core.search import Direction
from pdfhandler_core.session import SessionController


class BridgeDispatcher:
    """
    Correlates host-bridge commands with their asynchronous completions by request id.

    `submit` returns a future resolving to a JSON-ready dict; the host awaits it (or attaches
    a done-callback) and forwards the payload for that request id.
    """

    def __init__(self, controller: SessionController):
        self._controller = controller
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._actions: dict[str, Callable[[Sequence[Any]], Awaitable[dict[str, Any]]]] = {
            "downloadFile": self._acquire,
            "acquireAndOpen": self._acquire,
            "search": self._search,
            "navigate": self._navigate,
            "close": self._close,
        }

    def submit(self, request_id: str, action: str, args: Sequence[Any] = ()) -> asyncio.Future[dict[str, Any]]:
        if request_id in self._pending:
            raise ValueError(f"request {request_id!r} is already in flight")
        handler = self._actions.get(action)
        if handler is None:
            raise ValueError(f"unknown action {action!r}")
        future = asyncio.ensure_future(handler(args))
        self._pending[request_id] = future
        future.add_done_callback(lambda _f: self._pending.pop(request_id, None))
        return future

    def pending(self) -> list[str]:
        return sorted(self._pending)

    @staticmethod
    def _arg(args: Sequence[Any], name: str) -> str:
        if not args or not isinstance(args[0], str):
            raise ValueError(f"missing string argument {name!r}")
        return args[0]

    async def _acquire(self, args: Sequence[Any]) -> dict[str, Any]:
        result = await self._controller.acquire_and_open(self._arg(args, "url"))
        return result.model_dump(mode="json")

    async def _search(self, args: Sequence[Any]) -> dict[str, Any]:
        query = args[0] if args and isinstance(args[0], str) else ""
        result = await self._controller.search(query)
        return result.model_dump(mode="json")

    async def _navigate(self, args: Sequence[Any]) -> dict[str, Any]:
        direction = Direction(self._arg(args, "direction"))
        return self._controller.navigate(direction).model_dump(mode="json")

    async def _close(self, args: Sequence[Any]) -> dict[str, Any]:
        await self._controller.close()
        return {"ok": True}
