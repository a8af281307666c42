"""CLI script for product page recommendations.

Useful for testing and evaluation. Loads a CSV catalog, computes the
related and explore-more lists for a product and prints them.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import numpy as np

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storerec.api.exceptions import ProductNotFoundError, TransientFetchError
from storerec.models import Product, Scope
from storerec.recommender.providers import CategoryProviderView, CsvCatalog
from storerec.recommender.session import ProductPage, ProductPageLoader

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def get_product_page(
    product_id: str,
    data_dir: str = "data",
    shop_id: Optional[str] = None,
    k: int = 6,
    seed: Optional[int] = None,
) -> ProductPage:
    """Compute the product page for ``product_id``.

    Args:
        product_id: Focal product ID
        data_dir: Directory with products.csv and categories.csv
        shop_id: Restrict to one shop; None for the marketplace view
        k: Number of related products
        seed: Seed for the shop interleaving shuffle

    Returns:
        The computed page
    """
    try:
        catalog = CsvCatalog(Path(data_dir))
    except TransientFetchError as e:
        print(f"Error: Catalog not found in {data_dir}", file=sys.stderr)
        print(f"  {e.message}", file=sys.stderr)
        sys.exit(1)

    loader = ProductPageLoader(
        CategoryProviderView(catalog),
        catalog,
        rng=np.random.default_rng(seed),
    )
    try:
        page = asyncio.run(loader.load("cli", product_id, Scope(shop_id=shop_id), k=k))
    except ProductNotFoundError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    return page


def _describe(product: Product) -> str:
    return (
        f"{product.id:<8} {product.price:>10.2f} {product.currency:<4} "
        f"category={product.category_id or '-':<6} shop={product.shop_id or '-'}"
    )


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Show related and explore-more products for a product",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py p42
  python scripts/recommend_cli.py p42 --k 4
  python scripts/recommend_cli.py p42 --shop-id s1
  python scripts/recommend_cli.py p42 --seed 7 --limit 30
        """
    )

    parser.add_argument("product_id", help="Product ID to compute recommendations for")
    parser.add_argument(
        "--data-dir",
        default="data",
        help="Directory containing products.csv and categories.csv (default: data)"
    )
    parser.add_argument(
        "--shop-id",
        default=None,
        help="Single-shop view for this shop (default: marketplace-wide)"
    )
    parser.add_argument(
        "--k",
        type=int,
        default=6,
        help="Number of related products (default: 6)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for shop interleaving (default: random)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Explore-more products to print (default: 20)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    page = get_product_page(
        product_id=args.product_id,
        data_dir=args.data_dir,
        shop_id=args.shop_id,
        k=args.k,
        seed=args.seed,
    )

    print(f"\nFocal product (mode: {page.mode.value}):")
    print(f"  {_describe(page.focal)}")

    print(f"\nRelated ({len(page.related)}):")
    for product in page.related:
        print(f"  {_describe(product)}")

    print(f"\nExplore more ({len(page.explore_more)} total, showing {args.limit}):")
    for product in page.explore_more[: args.limit]:
        print(f"  {_describe(product)}")

    print()


if __name__ == "__main__":
    main()
