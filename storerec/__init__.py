"""StoreRec: catalog recommendations for a multi-tenant storefront.

This package provides the recommendation engine behind product pages and
browsing pages: related and "explore more" lists for a focal product,
personalized marketplace sections, and a per-session affinity journal.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: category indexing, candidate tiers, shop interleaving,
        affinity tracking and section composition
"""

__version__ = "0.1.0"
