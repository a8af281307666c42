"""Generate a fake multi-shop catalog for testing and development.

Writes ``categories.csv`` (a two-level category tree) and ``products.csv``
(products spread over shops, categories and prices) in the layout
``CsvCatalog`` reads.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_catalog.py

    Or import and use programmatically:
        from scripts.generate_fake_catalog import generate_fake_catalog
        categories, products = generate_fake_catalog(num_products=200)
"""

import random
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

# Default configuration constants
DEFAULT_NUM_SHOPS = 5
DEFAULT_NUM_ROOT_CATEGORIES = 4
DEFAULT_CHILDREN_PER_ROOT = 3
DEFAULT_NUM_PRODUCTS = 120
DEFAULT_CURRENCY = "ETB"
DEFAULT_SEED = 42


def generate_fake_catalog(
    num_shops: int = DEFAULT_NUM_SHOPS,
    num_root_categories: int = DEFAULT_NUM_ROOT_CATEGORIES,
    children_per_root: int = DEFAULT_CHILDREN_PER_ROOT,
    num_products: int = DEFAULT_NUM_PRODUCTS,
    seed: Optional[int] = DEFAULT_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Generate a synthetic category tree and product list.

    Prices are log-normal around a per-category base price so that the
    price band around a focal product catches a realistic share of its
    neighbours. About one product in twenty has no category and one in
    forty has no shop, to exercise the degraded paths.

    Args:
        num_shops: Number of shops selling products. Must be positive.
        num_root_categories: Number of top-level categories. Must be positive.
        children_per_root: Subcategories under each root.
        num_products: Number of products. Must be positive.
        seed: Random seed, or None for a different catalog every run.

    Returns:
        A tuple of DataFrames:
            - categories with columns id, parent_id
            - products with columns id, title, category_id, price,
              currency, shop_id

    Raises:
        ValueError: If any count is non-positive.
    """
    if num_shops <= 0 or num_root_categories <= 0 or num_products <= 0:
        raise ValueError("num_shops, num_root_categories and num_products must be positive")
    if children_per_root < 0:
        raise ValueError("children_per_root must not be negative")

    rng = np.random.default_rng(seed)
    picker = random.Random(seed)

    categories = []
    base_prices = {}
    for r in range(1, num_root_categories + 1):
        root_id = f"c{r}"
        categories.append({"id": root_id, "parent_id": ""})
        base_prices[root_id] = float(rng.uniform(50, 2000))
        for c in range(1, children_per_root + 1):
            child_id = f"c{r}.{c}"
            categories.append({"id": child_id, "parent_id": root_id})
            base_prices[child_id] = base_prices[root_id] * float(rng.uniform(0.5, 1.5))

    category_ids = list(base_prices)
    products = []
    for i in range(1, num_products + 1):
        category_id = picker.choice(category_ids)
        price = base_prices[category_id] * float(rng.lognormal(0.0, 0.35))
        products.append({
            "id": f"p{i}",
            "title": f"Product {i}",
            "category_id": "" if picker.random() < 0.05 else category_id,
            "price": round(price, 2),
            "currency": DEFAULT_CURRENCY,
            "shop_id": "" if picker.random() < 0.025 else f"s{picker.randint(1, num_shops)}",
        })

    return pd.DataFrame(categories), pd.DataFrame(products)


def main() -> None:
    """Generate a default catalog into ``data/`` and print a summary."""
    print(f"Generating {DEFAULT_NUM_PRODUCTS} fake products...")

    try:
        categories, products = generate_fake_catalog()
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    categories.to_csv(data_dir / "categories.csv", index=False)
    products.to_csv(data_dir / "products.csv", index=False)

    print(f"\nData generated successfully!")
    print(f"Saved to: {data_dir}")
    print(f"\nProducts preview:")
    print(products.head(10))
    print(f"\nData summary:")
    print(f"  Categories: {len(categories)}")
    print(f"  Products: {len(products)}")
    print(f"  Shops: {products['shop_id'].replace('', pd.NA).nunique()}")
    print(f"  Price range: {products['price'].min()} to {products['price'].max()}")


if __name__ == "__main__":
    main()
