"""Tests for the catalog providers and persistent stores."""

import asyncio
import hashlib

import pandas as pd
import pytest

from storerec.api.exceptions import StorageUnavailable, TransientFetchError
from storerec.models import Category, PoolFilters, Scope
from storerec.recommender.providers import (
    CategoryProviderView,
    CsvCatalog,
    FileStore,
    InMemoryCatalog,
    MemoryStore,
)


def ids(products):
    return [p.id for p in products]


@pytest.fixture
def csv_dir(tmp_path):
    """Small catalog written the way generate_fake_catalog writes it."""
    pd.DataFrame(
        {
            "id": ["p1", "p2", "p3"],
            "title": ["Mug", "Plate", "Spoon"],
            "price": ["10", "", "4.5"],
            "category_id": ["c1", "c1.1", ""],
            "shop_id": ["s1", "s2", "s1"],
            "description": ["blue", "", "steel"],
        }
    ).to_csv(tmp_path / "products.csv", index=False)
    pd.DataFrame(
        {"id": ["c1", "c1.1"], "parent_id": ["", "c1"]}
    ).to_csv(tmp_path / "categories.csv", index=False)
    return tmp_path


# ===== InMemoryCatalog =====


def test_fetch_filters_scope_categories_and_limit(marketplace_products):
    catalog = InMemoryCatalog(marketplace_products)

    shop = asyncio.run(catalog.fetch(Scope(shop_id="S2")))
    filtered = asyncio.run(
        catalog.fetch(Scope(), PoolFilters(category_ids=frozenset({"C1", "C3"}), limit=3))
    )

    assert ids(shop) == ["P3", "P7"]
    assert ids(filtered) == ["P1", "P2", "P4"]


def test_fetch_by_ids_keeps_request_order(marketplace_products):
    catalog = InMemoryCatalog(marketplace_products)

    found = asyncio.run(catalog.fetch_by_ids(["P5", "gone", "P1"]))

    assert ids(found) == ["P5", "P1"]


def test_shop_category_lists(category_tree, shop_categories):
    catalog = InMemoryCatalog([], category_tree, shop_categories)
    provider = CategoryProviderView(catalog)

    assert len(asyncio.run(provider.fetch(Scope()))) == 5
    assert asyncio.run(provider.fetch(Scope(shop_id="S1"))) == [Category("C1"), Category("C3")]
    assert len(asyncio.run(provider.fetch(Scope(shop_id="S2")))) == 5


# ===== CsvCatalog =====


def test_csv_catalog_loads_products_and_categories(csv_dir):
    catalog = CsvCatalog(csv_dir)

    p1, p2, p3 = catalog.products
    assert (p1.id, p1.price, p1.category_id, p1.shop_id) == ("p1", 10.0, "c1", "s1")
    assert p1.extra == {"description": "blue"}
    assert p2.price == 0.0
    assert p2.extra == {}
    assert p3.category_id is None
    assert catalog.categories == [Category("c1"), Category("c1.1", parent_id="c1")]


def test_csv_catalog_without_categories_file(csv_dir):
    (csv_dir / "categories.csv").unlink()

    catalog = CsvCatalog(csv_dir)

    assert catalog.categories == []
    assert len(catalog.products) == 3


def test_csv_catalog_missing_products_file(tmp_path):
    with pytest.raises(TransientFetchError) as exc_info:
        CsvCatalog(tmp_path)

    assert exc_info.value.status_code == 503
    assert exc_info.value.source.endswith("products.csv")


def test_csv_catalog_requires_id_column(tmp_path):
    pd.DataFrame({"title": ["orphan"]}).to_csv(tmp_path / "products.csv", index=False)

    with pytest.raises(TransientFetchError):
        CsvCatalog(tmp_path)


# ===== Stores =====


def test_memory_store_round_trip():
    store = MemoryStore()

    store.set("k", b"v")
    assert store.get("k") == b"v"

    store.remove("k")
    store.remove("k")
    assert store.get("k") is None


def test_file_store_round_trip(tmp_path):
    store = FileStore(tmp_path / "journals")

    assert store.get("storerec:abc:recentlyViewed") is None
    store.set("storerec:abc:recentlyViewed", b"[]")

    assert store.get("storerec:abc:recentlyViewed") == b"[]"
    digest = hashlib.sha256(b"storerec:abc:recentlyViewed").hexdigest()
    assert [p.name for p in (tmp_path / "journals").iterdir()] == [f"{digest}.json"]

    store.remove("storerec:abc:recentlyViewed")
    store.remove("storerec:abc:recentlyViewed")
    assert store.get("storerec:abc:recentlyViewed") is None


def test_file_store_keeps_keys_inside_root(tmp_path):
    store = FileStore(tmp_path / "journals")

    store.set("../escape", b"x")

    assert not (tmp_path / "escape.json").exists()
    assert len(list((tmp_path / "journals").iterdir())) == 1
    assert store.get("../escape") == b"x"


@pytest.mark.parametrize(
    "first, second",
    [
        ("a:b", "a_b"),
        ("shop/1", "shop_1"),
        ("storerec:x:recentlyViewed", "storerec_x_recentlyViewed"),
    ],
)
def test_file_store_similar_keys_do_not_collide(tmp_path, first, second):
    store = FileStore(tmp_path)

    store.set(first, b"first")
    store.set(second, b"second")

    assert store.get(first) == b"first"
    assert store.get(second) == b"second"

    store.remove(first)
    assert store.get(second) == b"second"


def test_file_store_os_errors_become_storage_unavailable(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way")
    store = FileStore(blocker)

    with pytest.raises(StorageUnavailable) as exc_info:
        store.set("key", b"x")

    assert exc_info.value.key == "key"
