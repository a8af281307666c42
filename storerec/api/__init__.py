"""FastAPI application module for StoreRec.

This module contains the FastAPI application, route handlers, and API
endpoints for the recommendation service. Sessions are identified by the
``X-Session-ID`` header so each viewer keeps its own affinity journal.
"""
