"""End-to-end tests for the StoreRec API.

Tests the full request/response cycle against a generated CSV catalog:
engine construction from the environment, product pages, history and
sections.
"""

import logging
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from scripts.generate_fake_catalog import generate_fake_catalog
from scripts.recommend_cli import get_product_page
from storerec.api import dependencies
from storerec.api.main import app

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)

# Create test client
client = TestClient(app)

SESSION = {"X-Session-ID": "e2e"}


@pytest.fixture
def catalog_dir(tmp_path, monkeypatch) -> Generator[Path, None, None]:
    """Write a generated catalog and point the service at it."""
    categories, products = generate_fake_catalog(num_products=80, seed=7)
    categories.to_csv(tmp_path / "categories.csv", index=False)
    products.to_csv(tmp_path / "products.csv", index=False)

    monkeypatch.setenv("STOREREC_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("STOREREC_STORE_DIR", raising=False)
    dependencies.set_engine(None)
    yield tmp_path
    dependencies.set_engine(None)


def test_generated_catalog_shape():
    categories, products = generate_fake_catalog(
        num_root_categories=2, children_per_root=2, num_products=10, seed=1
    )

    assert list(categories["id"]) == ["c1", "c1.1", "c1.2", "c2", "c2.1", "c2.2"]
    assert len(products) == 10
    assert products["id"].is_unique


def test_generate_rejects_bad_counts():
    with pytest.raises(ValueError):
        generate_fake_catalog(num_products=0)


def test_full_browsing_flow(catalog_dir):
    """Test viewing products then reading history and sections."""
    for product_id in ["p1", "p2", "p3"]:
        response = client.get(f"/products/{product_id}/recommendations", headers=SESSION)
        assert response.status_code == 200

        data = response.json()
        related = [p["id"] for p in data["related"]]
        explore = [p["id"] for p in data["explore_more"]]
        assert len(related) <= 6
        assert product_id not in related + explore
        assert not set(related) & set(explore)
        assert len(related) + len(explore) == 79

    history = client.get("/history", headers=SESSION).json()
    assert [v["id"] for v in history["recently_viewed"]] == ["p3", "p2", "p1"]

    sections = client.get("/sections", headers=SESSION).json()
    assert [p["id"] for p in sections["recently_viewed"]] == ["p3", "p2", "p1"]
    shown = (
        [p["id"] for p in sections["recently_viewed"]]
        + [p["id"] for p in sections["interest_based"]]
        + [p["id"] for p in sections["trending"]]
    )
    assert len(shown) == len(set(shown))
    assert sorted(shown) == sections["shown_ids"]


def test_shop_scoped_flow(catalog_dir):
    response = client.get("/products/p1/recommendations?shop_id=s1")

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "single-seller"
    assert all(p["shop_id"] == "s1" for p in data["related"] + data["explore_more"])


def test_cli_product_page(catalog_dir):
    page = get_product_page("p1", data_dir=str(catalog_dir), k=3, seed=0)

    assert page.focal.id == "p1"
    assert len(page.related) <= 3


def test_cli_exits_on_missing_catalog(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        get_product_page("p1", data_dir=str(tmp_path / "nowhere"))

    assert exc_info.value.code == 1
