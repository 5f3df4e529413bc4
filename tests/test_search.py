"""Tests for ranked school search."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List
from unittest.mock import MagicMock

import pytest

from myschool.cache import TTLCache
from myschool.index.loader import build_entry
from myschool.index.search import Query, Searcher, rank, score_entry
from myschool.index.snapshot import SnapshotHolder
from myschool.ingestion.neis import NeisError
from myschool.models import SchoolRecord, Snapshot

NAMES = ["서울고등학교", "서울여자고등학교", "부산고등학교"]


def make_snapshot(names: List[str]) -> Snapshot:
    entries = tuple(
        build_entry(SchoolRecord(code=str(i), org_code="B10", name=name)) for i, name in enumerate(names)
    )
    return Snapshot(entries=entries, loaded_at=datetime.now(timezone.utc))


def score(name: str, query: str) -> int:
    entry = build_entry(SchoolRecord(code="1", org_code="B10", name=name))
    return score_entry(entry, Query(query))


def scores_by_name(names: List[str], query: str) -> dict:
    return {item.school.name: item.score for item in rank(make_snapshot(names).entries, query)}


class TestScoreLadder:
    """Test each rule of the scoring ladder."""

    def test_exact_match(self) -> None:
        """Exact case-sensitive match scores 10000."""
        assert score("서울고등학교", "서울고등학교") == 10000

    def test_exact_match_ignore_case(self) -> None:
        """Case-insensitive exact match scores 9000."""
        assert score("Seoul Global High", "seoul global high") == 9000

    def test_prefix(self) -> None:
        """Case-sensitive prefix scores 8500."""
        assert score("서울고등학교", "서울") == 8500

    def test_prefix_ignore_case(self) -> None:
        """Case-insensitive prefix scores 8000."""
        assert score("Seoul Global High", "seoul") == 8000

    def test_initial_only_prefix(self) -> None:
        """Consonant query prefixing the key scores 7500."""
        assert score("서울고등학교", "ㅅㅇㄱ") == 7500

    def test_query_initials_prefix(self) -> None:
        """Non-initial query whose initials prefix the key scores 7000."""
        assert score("서울고등학교", "서우") == 7000

    def test_query_initials_prefix_ignores_spaces(self) -> None:
        """Spaces in a syllable query do not break the phonetic match."""
        assert score("서울고등학교", "서울 고") == 7000

    def test_substring(self) -> None:
        """Case-sensitive substring scores 6500 minus its index."""
        assert score("서울고등학교", "고등") == 6498

    def test_substring_ignore_case(self) -> None:
        """Case-insensitive substring scores 6000 minus its index."""
        assert score("Seoul Global High", "global") == 5994

    def test_initial_only_substring(self) -> None:
        """Consonant query inside the key scores 5500 minus its index."""
        assert score("서울고등학교", "ㄱㄷ") == 5498

    def test_query_initials_substring(self) -> None:
        """Non-initial query whose initials sit inside the key scores 5000 minus index."""
        assert score("부산고등학교", "사고") == 4999

    def test_no_match(self) -> None:
        """Unrelated queries score 0."""
        assert score("서울고등학교", "대전") == 0

    def test_query_longer_than_name(self) -> None:
        """A query longer than the name cannot match."""
        assert score("한빛고", "한빛고등학교") == 0

    def test_mixed_query_uses_initials_rules(self) -> None:
        """Mixed Hangul and Latin queries use the converted-initials rules."""
        assert score("서울Global고", "서우G") == 7000
        assert score("서울Global고", "오G") == 5000 - 1


class TestSingleCharacterPenalty:
    """Test the halving of weak single-character matches."""

    def test_substring_is_halved(self) -> None:
        """A lone syllable matched mid-name gets half the substring score."""
        assert score("서울고등학교", "고") == (6500 - 2) // 2

    def test_initial_substring_is_halved(self) -> None:
        """A lone consonant matched inside the key gets half the score."""
        assert score("부산고등학교", "ㅅ") == (5500 - 1) // 2

    def test_initial_prefix_is_not_halved(self) -> None:
        """A lone consonant matching the key prefix keeps its score."""
        assert score("서울고등학교", "ㅅ") == 7500

    def test_name_prefix_is_not_halved(self) -> None:
        """A lone character matching the name prefix keeps its score."""
        assert score("서울고등학교", "서") == 8500
        assert score("Seoul", "s") == 8000

    def test_exact_single_character(self) -> None:
        """A one-character name matched exactly keeps 10000."""
        assert score("가", "가") == 10000


class TestRank:
    """Test rank function."""

    def test_exact_match_ranks_first(self) -> None:
        """The exact name outranks every other school."""
        results = rank(make_snapshot(NAMES).entries, "서울고등학교")
        assert results[0].school.name == "서울고등학교"
        assert results[0].score == 10000
        assert all(item.score < 10000 for item in results[1:])

    def test_initial_query_matches_seoul_schools(self) -> None:
        """ㅅㅇ matches both Seoul schools by phonetic prefix only."""
        assert scores_by_name(NAMES, "ㅅㅇ") == {"서울고등학교": 7500, "서울여자고등학교": 7500}

    def test_single_consonant_query(self) -> None:
        """ㅅ ranks prefix hits above the halved substring hit."""
        results = scores_by_name(NAMES, "ㅅ")
        assert results == {"서울고등학교": 7500, "서울여자고등학교": 7500, "부산고등학교": 2749}

    def test_prefix_beats_substring(self) -> None:
        """Name prefixes rank above mid-name matches."""
        results = rank(make_snapshot(["부산서울학교", "서울고등학교"]).entries, "서울")
        assert [item.school.name for item in results] == ["서울고등학교", "부산서울학교"]

    def test_sorted_non_increasing(self) -> None:
        """Scores never increase down the list."""
        names = ["가나다", "나가다", "다나가", "가", "ㄱ나", "한가람고"]
        results = rank(make_snapshot(names).entries, "가")
        scores = [item.score for item in results]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_snapshot_order(self) -> None:
        """Equal scores keep their snapshot order."""
        results = rank(make_snapshot(NAMES).entries, "ㅅㅇ")
        assert [item.school.name for item in results] == ["서울고등학교", "서울여자고등학교"]

    def test_limit(self) -> None:
        """Never returns more than the limit."""
        names = [f"학교{i}" for i in range(150)]
        assert len(rank(make_snapshot(names).entries, "학교")) == 100
        assert len(rank(make_snapshot(names).entries, "학교", limit=5)) == 5

    def test_empty_query(self) -> None:
        """An empty query matches nothing."""
        assert rank(make_snapshot(NAMES).entries, "") == []


@pytest.fixture
def holder() -> SnapshotHolder:
    return SnapshotHolder(make_snapshot(NAMES))


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(3600)


class TestSearcher:
    """Test Searcher class."""

    def test_search_returns_records(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """Returns SchoolRecords in ranked order."""
        searcher = Searcher(holder, cache, MagicMock())
        results = searcher.search("서울고등학교")

        assert isinstance(results[0], SchoolRecord)
        assert results[0].name == "서울고등학교"

    def test_search_caches_results(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """Results are cached under search:<query>."""
        searcher = Searcher(holder, cache, MagicMock())
        results = searcher.search("서울")

        cached, found = cache.get("search:서울")
        assert found
        assert list(cached) == results

    def test_cache_hit_is_returned_verbatim(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """A cached answer wins over a newer snapshot until it expires."""
        searcher = Searcher(holder, cache, MagicMock())
        first = searcher.search("서울")
        holder.publish(make_snapshot(["서울과학고등학교"]))

        assert searcher.search("서울") == first

    def test_cache_type_mismatch_is_a_miss(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """A cached value of the wrong type is ignored and replaced."""
        cache.put("search:서울", "garbage")
        searcher = Searcher(holder, cache, MagicMock())

        results = searcher.search("서울")

        assert [school.name for school in results] == ["서울고등학교", "서울여자고등학교"]
        assert isinstance(cache.get("search:서울")[0], tuple)

    def test_results_are_copies(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """Mutating a returned list does not touch the cache."""
        searcher = Searcher(holder, cache, MagicMock())
        searcher.search("서울").clear()
        assert len(searcher.search("서울")) == 2

    def test_max_results(self, cache: TTLCache) -> None:
        """Respects the configured result cap."""
        holder = SnapshotHolder(make_snapshot([f"학교{i}" for i in range(150)]))
        searcher = Searcher(holder, cache, MagicMock(), max_results=100)
        assert len(searcher.search("학교")) == 100

    def test_empty_query(self, holder: SnapshotHolder, cache: TTLCache) -> None:
        """Empty queries return nothing and are not cached."""
        searcher = Searcher(holder, cache, MagicMock())
        assert searcher.search("") == []
        assert len(cache) == 0


class TestColdStart:
    """Test the live fallback before the first load."""

    def test_live_query_when_not_loaded(self, cache: TTLCache) -> None:
        """Asks NEIS directly and triggers a load."""
        client = MagicMock()
        live = [SchoolRecord("9", "B10", "한빛고")]
        client.search_school_names.return_value = live
        trigger = MagicMock()
        searcher = Searcher(SnapshotHolder(), cache, client, fallback_limit=100, on_cold_start=trigger)

        results = searcher.search("한빛")

        assert results == live
        client.search_school_names.assert_called_once_with("한빛", limit=100)
        trigger.assert_called_once()
        assert cache.get("search:한빛") == (None, False)

    def test_empty_snapshot_counts_as_cold(self, cache: TTLCache) -> None:
        """A published but empty snapshot also falls back."""
        client = MagicMock()
        client.search_school_names.return_value = []
        searcher = Searcher(SnapshotHolder(make_snapshot([])), cache, client)

        assert searcher.search("한빛") == []
        client.search_school_names.assert_called_once()

    def test_live_query_failure_propagates(self, cache: TTLCache) -> None:
        """Errors from the live query reach the caller."""
        client = MagicMock()
        client.search_school_names.side_effect = NeisError("down")
        searcher = Searcher(SnapshotHolder(), cache, client)

        with pytest.raises(NeisError):
            searcher.search("한빛")
