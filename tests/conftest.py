"""Shared fixtures and fakes for the StoreRec tests."""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storerec.api.metrics import metrics_service
from storerec.models import Category, PoolFilters, Product, Scope
from storerec.recommender.providers import InMemoryCatalog


class FixedRng:
    """RNG stub whose ``integers`` always picks the same end of the range.

    ``pick="high"`` makes every Fisher-Yates swap a no-op (identity order);
    ``pick="low"`` always swaps with index 0.
    """

    def __init__(self, pick: str = "high"):
        self.pick = pick
        self.calls: List[tuple] = []

    def integers(self, low: int, high: int) -> int:
        self.calls.append((low, high))
        return high - 1 if self.pick == "high" else low


class FakeClock:
    """Clock advancing one second per call."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class FlakyCatalog(InMemoryCatalog):
    """In-memory catalog whose individual sources can be made to fail."""

    def __init__(self, *args, fail_by_ids: bool = False, fail_filtered: bool = False,
                 fail_unfiltered: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_by_ids = fail_by_ids
        self.fail_filtered = fail_filtered
        self.fail_unfiltered = fail_unfiltered
        self.fetch_calls: List[Optional[PoolFilters]] = []

    async def fetch(self, scope: Scope, filters: Optional[PoolFilters] = None) -> List[Product]:
        self.fetch_calls.append(filters)
        filtered = filters is not None and bool(filters.category_ids)
        if filtered and self.fail_filtered:
            raise ConnectionError("filtered pool unavailable")
        if not filtered and self.fail_unfiltered:
            raise ConnectionError("trending pool unavailable")
        return await super().fetch(scope, filters)

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Product]:
        if self.fail_by_ids:
            raise TimeoutError("by-ids lookup timed out")
        return await super().fetch_by_ids(ids)


class BrokenStore:
    """PersistentStore that fails every call."""

    def get(self, key: str) -> Optional[bytes]:
        raise OSError("store offline")

    def set(self, key: str, value: bytes) -> None:
        raise OSError("store offline")

    def remove(self, key: str) -> None:
        raise OSError("store offline")


def make_product(
    product_id: str,
    category_id: Optional[str] = None,
    price: float = 0.0,
    shop_id: Optional[str] = None,
) -> Product:
    return Product(
        id=product_id,
        title=f"Product {product_id}",
        category_id=category_id,
        price=price,
        shop_id=shop_id,
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    """Give every test a clean metrics singleton."""
    metrics_service.reset()
    yield
    metrics_service.reset()


@pytest.fixture
def category_tree() -> List[Category]:
    """C1 > C2 > C4, C1 > C5, and an unrelated root C3."""
    return [
        Category("C1"),
        Category("C2", parent_id="C1"),
        Category("C3"),
        Category("C4", parent_id="C2"),
        Category("C5", parent_id="C1"),
    ]


@pytest.fixture
def marketplace_products() -> List[Product]:
    """Products from three shops across the category tree."""
    return [
        make_product("P1", "C1", 100, "S1"),
        make_product("P2", "C1", 95, "S1"),
        make_product("P3", "C2", 100, "S2"),
        make_product("P4", "C3", 500, "S1"),
        make_product("P5", "C1", 300, "S1"),
        make_product("P6", "C4", 110, "S3"),
        make_product("P7", "C5", 90, "S2"),
        make_product("P8", "C3", 120, "S3"),
        make_product("P9", None, 105, None),
        make_product("P10", "C2", 80, "S1"),
    ]


@pytest.fixture
def shop_categories() -> Dict[str, List[Category]]:
    return {"S1": [Category("C1"), Category("C3")]}
