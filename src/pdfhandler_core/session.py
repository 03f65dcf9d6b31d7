from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel

from pdfhandler_core.classify import classify_content, diagnostic_message, expected_extension
from pdfhandler_core.config import Settings, load_settings
from pdfhandler_core.document import DocumentBackend, DocumentModel, backend_for
from pdfhandler_core.errors import ClassificationError, PdfHandlerError, SessionError, SessionErrorKind
from pdfhandler_core.fetcher import ResourceFetcher
from pdfhandler_core.models import (
    CacheEntry,
    ClassificationResult,
    Diagnostic,
    DocumentKind,
    FetchedBlob,
    SearchState,
    SourceRequest,
)
from pdfhandler_core.search import Direction, SearchEngine
from pdfhandler_core.sources.blob import BlobResolver
from pdfhandler_core.storage.local_cache import LocalCacheStore, cache_key
from pdfhandler_core.util import extension_of, filename_from_disposition, filename_from_url

logger = logging.getLogger(__name__)

_SUFFIX_EXT_RE = re.compile(r"[a-z0-9]{1,10}")


class SessionState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    CACHING = "caching"
    READY = "ready"
    SEARCHING = "searching"
    CLOSED = "closed"
    FAILED = "failed"


_SEARCHABLE_STATES = {SessionState.READY, SessionState.SEARCHING}


class AcquireResult(BaseModel):
    ok: bool
    session_id: str
    kind: DocumentKind | None = None
    cache_key: str | None = None
    page_count: int | None = None
    diagnostic: Diagnostic | None = None
    error_kind: str | None = None
    message: str | None = None


class SearchResult(BaseModel):
    ok: bool = True
    query: str = ""
    match_count: int = 0
    current_index: int = -1
    page_index: int | None = None
    range_start: int | None = None
    range_length: int | None = None
    error_kind: str | None = None
    message: str | None = None

    @classmethod
    def from_state(cls, state: SearchState) -> SearchResult:
        current = state.current
        return cls(
            query=state.query,
            match_count=state.match_count,
            current_index=state.current_index,
            page_index=current.page_index if current else None,
            range_start=current.range_start if current else None,
            range_length=current.range_length if current else None,
        )

    @classmethod
    def from_error(cls, err: PdfHandlerError, *, query: str = "") -> SearchResult:
        return cls(ok=False, query=query, error_kind=err.kind_value, message=err.detail or str(err))


@dataclass(eq=False)
class Session:
    """Everything one viewing session owns; released as a unit on close."""

    session_id: str
    request: SourceRequest
    state: SessionState = SessionState.IDLE
    classification: ClassificationResult | None = None
    entry: CacheEntry | None = None
    model: DocumentModel | None = None
    engine: SearchEngine | None = None
    error: PdfHandlerError | None = None
    task: asyncio.Task | None = None
    search_task: asyncio.Task | None = None

    def release(self) -> None:
        if self.engine is not None:
            self.engine.clear()
            self.engine = None
        if self.model is not None:
            self.model.close()
            self.model = None


def _cache_suffix(kind: DocumentKind, filename: str | None) -> str:
    if kind is DocumentKind.PDF:
        return ".pdf"
    ext = extension_of(filename)
    if ext and _SUFFIX_EXT_RE.fullmatch(ext):
        return f".{ext}"
    return ""


def _close_abandoned_model(opening: asyncio.Future) -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    model = opening.result()
    model.close()
    logger.debug("closed %s opened for a cancelled session", model.entry.path.name)


class SessionController:
    """
    Runs Fetch -> Classify -> Cache -> Open for one document at a time and serves search
    and navigation for the resulting Ready session.

    Starting a new session closes the previous one, cancelling whatever it still has in flight.
    """

    def __init__(
        self,
        *,
        fetcher: ResourceFetcher,
        store: LocalCacheStore,
        backend: DocumentBackend,
    ):
        self._fetcher = fetcher
        self._store = store
        self._backend = backend
        self._current: Session | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        blob_resolver: BlobResolver | None = None,
    ) -> SessionController:
        settings = settings or load_settings()
        return cls(
            fetcher=ResourceFetcher(
                blob_resolver=blob_resolver,
                timeout_s=settings.http_timeout_s,
                user_agent=settings.http_user_agent,
            ),
            store=LocalCacheStore(settings.resolved_cache_dir, retention=settings.retention),
            backend=backend_for(settings.document_backend),
        )

    @property
    def current(self) -> Session | None:
        return self._current

    @property
    def store(self) -> LocalCacheStore:
        return self._store

    async def acquire_and_open(self, url: str) -> AcquireResult:
        session = Session(session_id=uuid4().hex, request=SourceRequest.from_url(url))
        # Install before awaiting so an overlapping call replaces this session, not the old one.
        previous, self._current = self._current, session
        if previous is not None:
            await self._shutdown(previous)
        if self._current is not session:
            session.state = SessionState.CLOSED
            return self._cancelled_result(session)
        logger.info("session %s: acquiring %.200s", session.session_id, session.request.raw_url)

        task = asyncio.create_task(self._run_pipeline(session))
        session.task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task.cancelled():
            return self._cancelled_result(session)
        exc = task.exception()
        if exc is not None:
            raise exc
        return self._acquire_result(session)

    @staticmethod
    def _cancelled_result(session: Session) -> AcquireResult:
        return AcquireResult(
            ok=False,
            session_id=session.session_id,
            error_kind=SessionErrorKind.CANCELLED.value,
            message="superseded by a newer session",
        )

    async def _run_pipeline(self, session: Session) -> None:
        try:
            session.state = SessionState.FETCHING
            blob = await self._fetcher.fetch(session.request)

            session.state = SessionState.CLASSIFYING
            result = classify_content(blob, expected_extension(blob))
            session.classification = result
            if result.is_failure:
                raise ClassificationError(result, f"{len(blob.data)} bytes from {blob.source_url[:200]}")
            if result.diagnostic is Diagnostic.TRUNCATED:
                logger.warning("session %s: document looks truncated; attempting to open", session.session_id)

            session.state = SessionState.CACHING
            session.entry = await self._cache(blob, result.kind)
            if result.kind is DocumentKind.PDF:
                session.model = await self._open_model(session.entry)
                session.engine = SearchEngine(session.model)

            session.state = SessionState.READY
            logger.info("session %s: ready (%s, key=%s)", session.session_id, result.kind.value, session.entry.key)
        except PdfHandlerError as e:
            stage = session.state.value
            session.error = e
            session.state = SessionState.FAILED
            logger.warning("session %s: failed while %s: %s", session.session_id, stage, e)
        except asyncio.CancelledError:
            session.state = SessionState.CLOSED
            session.release()
            raise
        except Exception:
            session.state = SessionState.FAILED
            logger.exception("session %s: unexpected pipeline error", session.session_id)
            raise

    async def _open_model(self, entry: CacheEntry) -> DocumentModel:
        opening = asyncio.ensure_future(asyncio.to_thread(DocumentModel.open, entry, self._backend))
        try:
            return await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; close whatever it finishes opening.
            opening.add_done_callback(_close_abandoned_model)
            raise

    async def _cache(self, blob: FetchedBlob, kind: DocumentKind) -> CacheEntry:
        filename = filename_from_disposition(blob.content_disposition) or filename_from_url(blob.source_url)
        key = cache_key(blob.source_url, kind, filename)
        return await asyncio.to_thread(self._store.put, key, blob.data, suffix=_cache_suffix(kind, filename))

    def _acquire_result(self, session: Session) -> AcquireResult:
        if session.state is SessionState.FAILED and session.error is not None:
            err = session.error
            diagnostic = session.classification.diagnostic if session.classification else None
            if isinstance(err, ClassificationError):
                message = diagnostic_message(err.result.diagnostic)
            else:
                message = str(err)
            return AcquireResult(
                ok=False,
                session_id=session.session_id,
                kind=session.classification.kind if session.classification else None,
                diagnostic=diagnostic,
                error_kind=err.kind_value,
                message=message,
            )
        assert session.classification is not None and session.entry is not None
        return AcquireResult(
            ok=True,
            session_id=session.session_id,
            kind=session.classification.kind,
            cache_key=session.entry.key,
            page_count=session.model.page_count if session.model else None,
            diagnostic=session.classification.diagnostic,
        )

    def _ready_session(self) -> Session:
        session = self._current
        if session is None or session.state not in _SEARCHABLE_STATES:
            raise SessionError(SessionErrorKind.NOT_READY, "no document is open")
        if session.engine is None:
            raise SessionError(SessionErrorKind.NOT_READY, "the open document is not searchable")
        return session

    async def search(self, query: str) -> SearchResult:
        try:
            session = self._ready_session()
        except SessionError as e:
            return SearchResult.from_error(e, query=query)
        assert session.engine is not None

        previous = session.search_task
        if previous is not None and not previous.done():
            previous.cancel()

        session.state = SessionState.SEARCHING
        task = asyncio.create_task(session.engine.search(query))
        session.search_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if session.search_task is task:
                session.search_task = None
                if session.state is SessionState.SEARCHING:
                    session.state = SessionState.READY

        if task.cancelled():
            kind = SessionErrorKind.SUPERSEDED if session is self._current else SessionErrorKind.CANCELLED
            return SearchResult.from_error(SessionError(kind, "search was interrupted"), query=query)
        exc = task.exception()
        if isinstance(exc, SessionError):
            return SearchResult.from_error(exc, query=query)
        if exc is not None:
            raise exc
        return SearchResult.from_state(task.result())

    def navigate(self, direction: Direction | str) -> SearchResult:
        try:
            session = self._ready_session()
        except SessionError as e:
            return SearchResult.from_error(e)
        assert session.engine is not None
        return SearchResult.from_state(session.engine.advance(Direction(direction)))

    async def close(self) -> None:
        session = self._current
        if session is None:
            return
        self._current = None
        await self._shutdown(session)

    async def _shutdown(self, session: Session) -> None:
        pending = [t for t in (session.search_task, session.task) if t is not None and not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.wait(pending)
        session.release()
        if session.state is not SessionState.FAILED:
            session.state = SessionState.CLOSED
        logger.info("session %s: closed", session.session_id)

    async def aclose(self) -> None:
        await self.close()
        await self._fetcher.aclose()
