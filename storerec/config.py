"""Configuration for the StoreRec engine and service.

Defaults mirror the limits the storefront has always used. The service
reads a handful of environment overrides at startup.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Candidate pipeline
DEFAULT_RELATED_LIMIT = 6
PRICE_BAND_LOW = 0.7
PRICE_BAND_HIGH = 1.3

# Affinity journal caps
MAX_RECENT_PRODUCTS = 20
MAX_SEARCH_HISTORY = 10
MAX_CATEGORY_TRACKING = 50
DEFAULT_TOP_CATEGORIES = 5

# Marketplace sections
RECENT_SECTION_SIZE = 5
INTEREST_SECTION_SIZE = 8
TRENDING_SECTION_SIZE = 8
INTEREST_CATEGORY_COUNT = 3
SECTION_POOL_SIZE = 20

# Candidate pool fetched for a product page
DEFAULT_POOL_SIZE = 200
DEFAULT_CURRENCY = "ETB"

# Most recent product pages kept for ``ProductPageLoader.current``
MAX_PUBLISHED_PAGES = 1024


@dataclass
class JournalLimits:
    """Caps applied to the per-session affinity journals."""

    recent_products: int = MAX_RECENT_PRODUCTS
    search_history: int = MAX_SEARCH_HISTORY
    category_tracking: int = MAX_CATEGORY_TRACKING


@dataclass
class SectionLimits:
    """Sizes of the three marketplace sections and their source pools."""

    recently_viewed: int = RECENT_SECTION_SIZE
    interest_based: int = INTEREST_SECTION_SIZE
    trending: int = TRENDING_SECTION_SIZE
    interest_categories: int = INTEREST_CATEGORY_COUNT
    pool_size: int = SECTION_POOL_SIZE


@dataclass
class RecommenderConfig:
    """Parameters of the candidate pipeline and section composer."""

    related_limit: int = DEFAULT_RELATED_LIMIT
    price_band_low: float = PRICE_BAND_LOW
    price_band_high: float = PRICE_BAND_HIGH
    pool_size: int = DEFAULT_POOL_SIZE
    published_pages: int = MAX_PUBLISHED_PAGES
    journals: JournalLimits = field(default_factory=JournalLimits)
    sections: SectionLimits = field(default_factory=SectionLimits)


@dataclass
class ServiceConfig:
    """Settings for the HTTP service.

    Attributes:
        log_level: Root logging level.
        data_dir: Directory holding ``products.csv`` and ``categories.csv``.
            When unset the service starts with an empty in-memory catalog.
        store_dir: Directory for persisted affinity journals. When unset the
            journals live in memory for the lifetime of the process.
        default_currency: Currency assumed for products that carry none.
    """

    log_level: str = "INFO"
    data_dir: Optional[Path] = None
    store_dir: Optional[Path] = None
    default_currency: str = DEFAULT_CURRENCY
    recommender: RecommenderConfig = field(default_factory=RecommenderConfig)

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Build a config from ``STOREREC_*`` environment variables."""
        data_dir = os.environ.get("STOREREC_DATA_DIR")
        store_dir = os.environ.get("STOREREC_STORE_DIR")
        recommender = RecommenderConfig()
        pool_size = os.environ.get("STOREREC_POOL_SIZE")
        if pool_size:
            recommender.pool_size = int(pool_size)

        return cls(
            log_level=os.environ.get("STOREREC_LOG_LEVEL", "INFO"),
            data_dir=Path(data_dir) if data_dir else None,
            store_dir=Path(store_dir) if store_dir else None,
            default_currency=os.environ.get(
                "STOREREC_DEFAULT_CURRENCY", DEFAULT_CURRENCY
            ),
            recommender=recommender,
        )
