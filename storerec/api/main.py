"""FastAPI application main module.

This module defines the FastAPI application instance, its exception
handlers and the core health and metrics endpoints for the StoreRec
service.
"""

import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storerec import __version__
from storerec.api.exceptions import StoreRecException
from storerec.api.logging_config import RequestLoggingMiddleware, setup_logging
from storerec.api.metrics import metrics_service
from storerec.api.routes import history, recommend
from storerec.config import ServiceConfig

logger = logging.getLogger(__name__)

setup_logging(ServiceConfig.from_env().log_level)

# Create FastAPI application instance
app = FastAPI(
    title="StoreRec API",
    description="Catalog recommendations for a multi-tenant storefront",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommend.router)
app.include_router(history.router)


@app.exception_handler(StoreRecException)
async def storerec_exception_handler(
    request: Request, exc: StoreRecException
) -> JSONResponse:
    """Render engine errors as ``{error, message, details}``."""
    logger.warning(
        "Request rejected",
        extra={
            "path": str(request.url.path),
            "error_type": type(exc).__name__,
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Dictionary with status key set to "ok".

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/metrics")
def get_metrics() -> Dict:
    """Computation counts, latencies and fetch failures since startup."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storerec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
