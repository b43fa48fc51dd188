"""FastAPI application main module.

This module defines the main FastAPI application instance and core API
endpoints for the StoreRec recommendation service: health, store status,
metrics, and the error handler mapping StoreRec exceptions to JSON.
"""

import logging
import os
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from storerec import __version__
from storerec.api.logging_config import RequestLoggingMiddleware, setup_logging
from storerec.api.metrics import metrics_service
from storerec.api.routes import recommend
from storerec.recommender.exceptions import StoreRecException

logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title="StoreRec API",
    description="Hybrid product recommendation service",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommend.router)
app.include_router(recommend.interactions_router)


@app.exception_handler(StoreRecException)
async def storerec_exception_handler(request: Request, exc: StoreRecException) -> JSONResponse:
    """Render StoreRec errors as {"error", "message", "details"} JSON."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={"path": str(request.url.path), "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            {
                "error": type(exc).__name__,
                "message": exc.message,
                "details": exc.details,
            }
        ),
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


@app.get("/status")
def store_status() -> Dict[str, Any]:
    """Report whether the data store is loaded and how large it is."""
    return recommend.get_store_status()


@app.get("/metrics")
def metrics() -> Dict[str, Any]:
    """Per-operation call counts and latency."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    setup_logging(os.environ.get("STOREREC_LOG_LEVEL", "INFO"))
    uvicorn.run(
        "storerec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
