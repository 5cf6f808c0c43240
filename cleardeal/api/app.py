"""ClearDeal HTTP API - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cleardeal import __version__
from cleardeal.errors import (
    ClearDealError,
    ConflictError,
    DuplicateApplicationError,
    NoSubmissionError,
    NotEligibleError,
    NotFoundError,
    NotSelectedError,
    SettlementError,
    ValidationError,
)
from cleardeal.marketplace import Marketplace, build_marketplace

from .routes import router, summary_router
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateApplicationError: status.HTTP_409_CONFLICT,
    NotEligibleError: status.HTTP_403_FORBIDDEN,
    NotSelectedError: status.HTTP_409_CONFLICT,
    NoSubmissionError: status.HTTP_409_CONFLICT,
    SettlementError: status.HTTP_502_BAD_GATEWAY,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_code_for(error: ClearDealError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def clear_deal_error_handler(request: Request, exc: ClearDealError) -> JSONResponse:
    code = status_code_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {code} {type(exc).__name__}: {exc}")
    body = ErrorResponse(
        detail=str(exc),
        error=type(exc).__name__,
        reason=exc.reason if isinstance(exc, SettlementError) else None,
    )
    return JSONResponse(status_code=code, content=body.model_dump(exclude_none=True))


def create_app(marketplace: Marketplace | None = None) -> FastAPI:
    """Build the API app.

    Args:
        marketplace: Serve this marketplace; when omitted one is built from
            the environment config at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "marketplace", None) is None:
            owned = build_marketplace()
            app.state.marketplace = owned
        logger.info("Starting ClearDeal API")
        yield
        if owned is not None:
            owned.close()
        logger.info("Shutting down ClearDeal API")

    app = FastAPI(
        title="ClearDeal API",
        description="Freelance job marketplace with escrowed bounties",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.marketplace = marketplace
    app.add_exception_handler(ClearDealError, clear_deal_error_handler)

    app.include_router(router)
    app.include_router(summary_router)

    @app.get("/health")
    async def health():
        return {"service": "cleardeal", "version": __version__, "status": "ok"}

    return app
