"""Tests for the referer index builder and cache."""

import copy
import logging

import pytest

from referer_classifier.database import RefererDatabaseError
from referer_classifier.index import IndexCache, RefererIndex, build_index, get_index
from referer_classifier.models import RefererDatabase, RefererRecord


SOURCE = {
    "search": {
        "Google": {"domains": ["google.com", "google.com/search"], "parameters": ["Q", "query"]},
    },
    "social": {
        "Twitter": {"domains": ["twitter.com", "t.co"]},
    },
}


class TestBuildIndex:
    """Flattening the database into lookup keys."""

    def test_every_domain_is_a_key(self):
        index = build_index(SOURCE)
        assert len(index) == 4
        assert "google.com" in index
        assert "google.com/search" in index
        assert "t.co" in index

    def test_record_fields(self):
        index = build_index(SOURCE)
        assert index.get("google.com") == RefererRecord(
            name="Google", medium="search", params=frozenset({"q", "query"})
        )
        assert index.get("twitter.com") == RefererRecord(name="Twitter", medium="social")

    def test_parameters_lowercased(self):
        index = build_index(SOURCE)
        assert index.get("google.com/search").params == frozenset({"q", "query"})

    def test_no_parameters_is_none(self):
        index = build_index(SOURCE)
        assert index.get("t.co").params is None

    def test_domain_keys_not_normalized(self):
        index = build_index({"search": {"Ex": {"domains": ["Example.COM/"]}}})
        assert "Example.COM/" in index
        assert "example.com" not in index

    def test_later_entry_overwrites_earlier(self, caplog):
        source = {
            "search": {"A": {"domains": ["x.com"]}},
            "social": {"B": {"domains": ["x.com"]}},
        }
        with caplog.at_level(logging.DEBUG, logger="referer_classifier.index"):
            index = build_index(source)
        assert index.get("x.com") == RefererRecord(name="B", medium="social")
        assert "overwritten" in caplog.text

    def test_source_not_mutated(self):
        source = copy.deepcopy(SOURCE)
        build_index(source)
        assert source == SOURCE

    def test_accepts_validated_database(self):
        db = RefererDatabase.model_validate(SOURCE)
        assert len(build_index(db)) == 4

    def test_empty_database(self):
        assert len(build_index({})) == 0


class TestMalformedDatabase:
    """Malformed sources fail at build time."""

    @pytest.mark.parametrize("source", [
        {"search": {"Google": {"parameters": ["q"]}}},
        {"search": {"Google": {"domains": []}}},
        {"search": {"Google": {"domains": "google.com"}}},
        {"search": ["google.com"]},
        ["search"],
    ])
    def test_malformed_raises(self, source):
        with pytest.raises(RefererDatabaseError):
            build_index(source)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            build_index({"search": {"Google": {}}})


class TestResolve:
    """Host narrowing on a prebuilt index."""

    def _index(self):
        return RefererIndex({
            "example.com": RefererRecord(name="Bare", medium="a"),
            "example.com/search": RefererRecord(name="Path", medium="b"),
            "deep.example.com/x/y": RefererRecord(name="Full", medium="c"),
        })

    def test_include_path_prefers_path_key(self):
        index = self._index()
        assert index.resolve("example.com", "/search/q", include_path=True).name == "Path"

    def test_without_path_only_bare_keys(self):
        index = self._index()
        assert index.resolve("example.com", "/search", include_path=False).name == "Bare"

    def test_full_path_key(self):
        index = self._index()
        assert index.resolve("deep.example.com", "/x/y", include_path=True).name == "Full"

    def test_narrowing_to_parent(self):
        index = self._index()
        assert index.resolve("a.b.example.com", "/", include_path=False).name == "Bare"

    def test_no_match_returns_none(self):
        index = self._index()
        assert index.resolve("example.org", "/search", include_path=True) is None
        assert index.lookup("localhost", "/") is None

    def test_empty_segments_skipped(self):
        index = self._index()
        assert index.resolve("example.com", "//search", include_path=True).name == "Path"


class TestIndexCache:
    """Index reuse by source identity."""

    def test_same_source_same_index(self):
        source = copy.deepcopy(SOURCE)
        assert get_index(source) is get_index(source)

    def test_different_source_different_index(self):
        first = copy.deepcopy(SOURCE)
        second = {"social": {"Other": {"domains": ["other.com"]}}}
        assert get_index(first) is not get_index(second)
        assert "other.com" in get_index(second)
        assert "other.com" not in get_index(first)

    def test_oldest_entry_evicted(self):
        cache = IndexCache(max_size=2)
        sources = [{"s": {f"R{i}": {"domains": [f"r{i}.com"]}}} for i in range(3)]
        first = cache.get(sources[0])
        cache.get(sources[1])
        cache.get(sources[2])
        assert len(cache) == 2
        assert cache.get(sources[0]) is not first

    def test_clear(self):
        cache = IndexCache()
        cache.get(copy.deepcopy(SOURCE))
        cache.clear()
        assert len(cache) == 0
