"""Ranked school name search over the live snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Sequence

from myschool.cache import TTLCache
from myschool.index.snapshot import SnapshotHolder
from myschool.ingestion.neis import NeisClient
from myschool.models import IndexEntry, SchoolRecord
from myschool.utils.text import extract_initials, is_initial_query

LOGGER = logging.getLogger(__name__)

SEARCH_KEY_PREFIX = "search:"

EXACT = 10000
EXACT_IGNORE_CASE = 9000
PREFIX = 8500
PREFIX_IGNORE_CASE = 8000
INITIALS_PREFIX = 7500
QUERY_INITIALS_PREFIX = 7000
SUBSTRING = 6500
SUBSTRING_IGNORE_CASE = 6000
INITIALS_SUBSTRING = 5500
QUERY_INITIALS_SUBSTRING = 5000


@dataclass(slots=True)
class ScoredSchool:
    school: SchoolRecord
    score: int


class Query:
    """Normalised forms of a search string, computed once per search."""

    __slots__ = ("text", "lower", "initials", "initial_only")

    def __init__(self, text: str) -> None:
        self.text = text
        self.lower = text.lower()
        self.initials = extract_initials(text)
        self.initial_only = is_initial_query(text)


def score_entry(entry: IndexEntry, query: Query) -> int:
    """Score one entry; the first matching rule wins and 0 means no match."""
    name = entry.school.name
    key = entry.phonetic_key
    name_lower = name.lower()

    if name == query.text:
        return EXACT
    if name_lower == query.lower:
        return EXACT_IGNORE_CASE
    if name.startswith(query.text):
        return PREFIX
    if name_lower.startswith(query.lower):
        return PREFIX_IGNORE_CASE
    if query.initial_only and key.startswith(query.text):
        return INITIALS_PREFIX
    if not query.initial_only and key.startswith(query.initials):
        return QUERY_INITIALS_PREFIX

    if query.text in name:
        score = SUBSTRING - name.find(query.text)
    elif query.lower in name_lower:
        score = SUBSTRING_IGNORE_CASE - name_lower.find(query.lower)
    elif query.initial_only and query.text in key:
        score = INITIALS_SUBSTRING - key.find(query.text)
    elif not query.initial_only and query.initials in key:
        score = QUERY_INITIALS_SUBSTRING - key.find(query.initials)
    else:
        return 0

    # Lone characters count at half weight when they only match as a substring.
    if len(query.text) == 1:
        score //= 2
    return score


def rank(entries: Sequence[IndexEntry], query: str, *, limit: int = 100) -> List[ScoredSchool]:
    """Score, filter and order entries by descending score.

    ``list.sort`` is stable, so entries with equal scores keep snapshot order.
    """
    if not query:
        return []
    prepared = Query(query)
    scored = []
    for entry in entries:
        score = score_entry(entry, prepared)
        if score > 0:
            scored.append(ScoredSchool(school=entry.school, score=score))
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:limit]


class Searcher:
    """High-level API to query the school directory."""

    def __init__(
        self,
        holder: SnapshotHolder,
        cache: TTLCache,
        client: NeisClient,
        *,
        max_results: int = 100,
        fallback_limit: int = 100,
        on_cold_start: Callable[[], object] | None = None,
    ) -> None:
        self.holder = holder
        self.cache = cache
        self.client = client
        self.max_results = max_results
        self.fallback_limit = fallback_limit
        self.on_cold_start = on_cold_start

    def search(self, query: str) -> List[SchoolRecord]:
        if not query:
            return []

        cache_key = f"{SEARCH_KEY_PREFIX}{query}"
        cached, found = self.cache.get(cache_key)
        if found:
            if isinstance(cached, tuple):
                return list(cached)
            LOGGER.warning("Ignoring cached value of type %s for %s", type(cached).__name__, cache_key)

        snapshot = self.holder.current()
        if snapshot is None or not snapshot.entries:
            return self._search_live(query)

        results = tuple(item.school for item in rank(snapshot.entries, query, limit=self.max_results))
        self.cache.put(cache_key, results)
        return list(results)

    def _search_live(self, query: str) -> List[SchoolRecord]:
        if self.on_cold_start is not None:
            self.on_cold_start()
        LOGGER.info("Directory not loaded yet, asking NEIS directly for %r", query)
        return self.client.search_school_names(query, limit=self.fallback_limit)
