import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.domain.exceptions import TransientStoreError

from .notifications import router as notifications_router

logger = logging.getLogger(__name__)


async def _transient_store_error_handler(request: Request, exc: TransientStoreError) -> JSONResponse:
    logger.warning("Notification store unavailable for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Notification store temporarily unavailable"},
    )


def register_routes(app: FastAPI) -> None:
    """Register the API routers and error handlers on the FastAPI application."""

    app.add_exception_handler(TransientStoreError, _transient_store_error_handler)
    app.include_router(notifications_router)
