from __future__ import annotations

import asyncio
import logging
import unicodedata
from enum import Enum

from pdfhandler_core.document import DocumentModel
from pdfhandler_core.errors import SessionError, SessionErrorKind
from pdfhandler_core.models import MatchLocation, SearchState

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


def normalize_for_search(text: str) -> tuple[str, list[int]]:
    """
    Fold `text` for case- and diacritic-insensitive matching.

    Returns the folded string and, for every folded character, the index of the source
    character it came from. Folding can change lengths ("ß" -> "ss", "ﬁ" -> "fi").
    """
    folded: list[str] = []
    index_map: list[int] = []
    for i, ch in enumerate(text):
        for part in unicodedata.normalize("NFKD", ch):
            if unicodedata.combining(part):
                continue
            for c in part.casefold():
                folded.append(c)
                index_map.append(i)
    return "".join(folded), index_map


def _scan(text: str, needle: str) -> list[tuple[int, int]]:
    hay, index_map = normalize_for_search(text)
    hits: list[tuple[int, int]] = []
    last_end = 0
    pos = hay.find(needle)
    while pos >= 0:
        start = index_map[pos]
        end = index_map[pos + len(needle) - 1] + 1
        while end < len(text) and unicodedata.combining(text[end]):
            end += 1
        # Two folded hits inside one expanded source character would overlap in source offsets.
        if start >= last_end:
            hits.append((start, end - start))
            last_end = end
        pos = hay.find(needle, pos + len(needle))
    return hits


def find_matches(text: str, query: str) -> list[tuple[int, int]]:
    """Non-overlapping `(start, length)` matches of `query` in `text`, in source offsets."""
    needle, _ = normalize_for_search(query)
    if not needle or not text:
        return []
    return _scan(text, needle)


class SearchEngine:
    """
    Full-text search over a DocumentModel with a cyclic current-match cursor.

    Pages are scanned on a worker thread, one at a time; a newer `search` call (or `clear`)
    supersedes an older one, which then raises `SessionError(superseded)` instead of
    publishing its results.
    """

    def __init__(self, model: DocumentModel):
        self._model = model
        self._state = SearchState(query="")
        self._generation = 0

    @property
    def state(self) -> SearchState:
        return self._state

    async def search(self, query: str) -> SearchState:
        self._generation += 1
        generation = self._generation

        if not query or not query.strip():
            self._state = SearchState(query=query or "")
            return self._state

        needle, _ = normalize_for_search(query)
        matches: list[MatchLocation] = []
        for page_index in range(self._model.page_count):
            self._check_current(generation)
            matches.extend(await asyncio.to_thread(self._scan_page, page_index, needle))

        self._check_current(generation)
        self._state = SearchState(query=query, matches=tuple(matches), current_index=0 if matches else -1)
        logger.debug("search %r: %d match(es) over %d page(s)", query, len(matches), self._model.page_count)
        return self._state

    def _scan_page(self, page_index: int, needle: str) -> list[MatchLocation]:
        text = self._model.page_text(page_index)
        if not text or not needle:
            return []
        return [
            MatchLocation(page_index=page_index, range_start=start, range_length=length)
            for start, length in _scan(text, needle)
        ]

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise SessionError(SessionErrorKind.SUPERSEDED, "a newer search replaced this one")

    def advance(self, direction: Direction) -> SearchState:
        n = self._state.match_count
        if n == 0:
            return self._state
        delta = 1 if Direction(direction) is Direction.FORWARD else -1
        index = (self._state.current_index + delta + n) % n
        self._state = SearchState(query=self._state.query, matches=self._state.matches, current_index=index)
        return self._state

    def clear(self) -> None:
        self._generation += 1
        self._state = SearchState(query="")
