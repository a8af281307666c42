"""Tests for the per-session affinity journal."""

import json

import pytest

from conftest import BrokenStore, FakeClock, make_product
from storerec.recommender.affinity import (
    CATEGORY_VIEWS,
    RECENTLY_VIEWED,
    SEARCH_HISTORY,
    AffinityStore,
    AffinityTracker,
)
from storerec.recommender.providers import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(store):
    return AffinityTracker(AffinityStore(store, namespace="tester"), clock=FakeClock())


# ===== Recently viewed =====


def test_scenario_journal_keeps_twenty_most_recent(tracker):
    for i in range(25):
        tracker.track_product_view(make_product(f"p{i}"))

    recent = tracker.get_recently_viewed()

    assert [r.id for r in recent] == [f"p{i}" for i in range(24, 4, -1)]


def test_repeat_view_moves_to_front_with_later_timestamp(tracker):
    tracker.track_product_view(make_product("p1"))
    first_seen = tracker.get_recently_viewed()[0].viewed_at
    tracker.track_product_view(make_product("p2"))
    tracker.track_product_view(make_product("p1"))

    recent = tracker.get_recently_viewed()

    assert [r.id for r in recent] == ["p1", "p2"]
    assert recent[0].viewed_at > first_seen


def test_view_record_keeps_title_and_category(tracker):
    tracker.track_product_view(make_product("p1", category_id="C1"))

    record = tracker.get_recently_viewed()[0]

    assert record.title == "Product p1"
    assert record.category_id == "C1"


# ===== Searches =====


def test_search_dedupes_case_insensitively(tracker):
    tracker.track_search("Shoes")
    tracker.track_search("hat")
    tracker.track_search("shoes")

    assert [s.query for s in tracker.get_search_history()] == ["shoes", "hat"]
    assert tracker.get_last_search() == "shoes"


@pytest.mark.parametrize("query", ["", "   ", "\t\n"])
def test_blank_search_ignored(tracker, store, query):
    tracker.track_search(query)

    assert tracker.get_search_history() == []
    assert store.keys() == []


def test_search_is_trimmed(tracker):
    tracker.track_search("  red bag ")
    tracker.track_search("RED BAG")

    assert [s.query for s in tracker.get_search_history()] == ["RED BAG"]


def test_search_history_capped_at_ten(tracker):
    for i in range(12):
        tracker.track_search(f"query {i}")

    history = tracker.get_search_history()

    assert len(history) == 10
    assert history[0].query == "query 11"
    assert history[-1].query == "query 2"


def test_last_search_none_when_empty(tracker):
    assert tracker.get_last_search() is None


# ===== Category affinity =====


def test_top_categories_by_view_count(tracker):
    for product_id, category in [("a", "C1"), ("b", "C2"), ("c", "C1"), ("d", "C3"), ("a", "C1")]:
        tracker.track_product_view(make_product(product_id, category_id=category))

    assert tracker.get_top_categories() == ["C1", "C2", "C3"]
    assert tracker.get_top_categories(1) == ["C1"]
    assert tracker.get_top_categories(0) == []
    assert tracker.get_category_affinities()[0].view_count == 3


def test_uncategorized_view_does_not_touch_affinity(tracker, store):
    tracker.track_product_view(make_product("p1"))

    assert tracker.get_top_categories() == []
    assert store.get("storerec:tester:categoryViews") is None


def test_category_tracking_capped_at_fifty(tracker):
    for i in range(55):
        tracker.track_product_view(make_product(f"p{i}", category_id=f"C{i}"))

    affinities = tracker.get_category_affinities()

    assert len(affinities) == 50
    # ties keep their order, so the newest single-view categories fall off
    assert affinities[-1].category_id == "C49"


def test_repeat_category_rises_above_cap(tracker):
    for i in range(50):
        tracker.track_product_view(make_product(f"p{i}", category_id=f"C{i}"))
    tracker.track_product_view(make_product("again", category_id="C42"))

    assert tracker.get_top_categories(1) == ["C42"]


# ===== Clearing =====


def test_clear_operations(tracker):
    tracker.track_product_view(make_product("p1", category_id="C1"))
    tracker.track_search("shoes")

    tracker.clear_recently_viewed()
    assert tracker.get_recently_viewed() == []
    assert tracker.get_last_search() == "shoes"

    tracker.clear_search_history()
    assert tracker.get_search_history() == []
    assert tracker.get_top_categories() == ["C1"]

    tracker.clear_all()
    assert tracker.get_top_categories() == []


# ===== Failure policy =====


def test_broken_store_never_raises():
    tracker = AffinityTracker(AffinityStore(BrokenStore()), clock=FakeClock())

    tracker.track_product_view(make_product("p1", category_id="C1"))
    tracker.track_search("shoes")
    tracker.clear_all()

    assert tracker.get_recently_viewed() == []
    assert tracker.get_search_history() == []
    assert tracker.get_last_search() is None
    assert tracker.get_top_categories() == []


def test_missing_store_reads_empty():
    tracker = AffinityTracker(AffinityStore(None))

    tracker.track_product_view(make_product("p1"))

    assert tracker.get_recently_viewed() == []


@pytest.mark.parametrize("payload", [b"not json", b"{\"id\": 1}", b"\xff\xfe", b"[1, \"x\"]"])
def test_corrupt_payload_reads_empty_and_recovers(store, tracker, payload):
    store.set("storerec:tester:recentlyViewed", payload)

    assert tracker.get_recently_viewed() == []

    tracker.track_product_view(make_product("p1"))
    assert [r.id for r in tracker.get_recently_viewed()] == ["p1"]


def test_malformed_entries_skipped(store, tracker):
    store.set(
        "storerec:tester:searchHistory",
        json.dumps([{"query": "ok", "searched_at": 5}, {"nope": 1}]).encode(),
    )

    assert [s.query for s in tracker.get_search_history()] == ["ok"]


def test_sessions_are_isolated(store):
    alice = AffinityTracker(AffinityStore(store, namespace="alice"))
    bob = AffinityTracker(AffinityStore(store, namespace="bob"))

    alice.track_search("shoes")

    assert bob.get_search_history() == []
    assert sorted(store.keys()) == ["storerec:alice:searchHistory"]


def test_journal_names_are_stable():
    affinity_store = AffinityStore(MemoryStore(), namespace="s")

    assert [affinity_store.key(j) for j in (RECENTLY_VIEWED, SEARCH_HISTORY, CATEGORY_VIEWS)] == [
        "storerec:s:recentlyViewed",
        "storerec:s:searchHistory",
        "storerec:s:categoryViews",
    ]
