"""
Bonus Ledger Platform API - Main Application.

FastAPI application with CORS enabled for the storefront and admin panels.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.models import ErrorResponse, FieldErrorResponse
from domain.errors import (
    BonusSystemError,
    ConcurrencyError,
    InsufficientBonusesError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from repositories.client import close_supabase_client, get_supabase_client
from services.bonus_scheduler import BonusProcessingScheduler
from settings import configure_logging, get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Status code per domain error; anything unlisted is a 400.
_ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    InsufficientStockError: 400,
    InsufficientBonusesError: 400,
    ConcurrencyError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = BonusProcessingScheduler(get_supabase_client, cron=settings.processing_cron)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.shutdown()
    close_supabase_client()


# Create FastAPI application
app = FastAPI(
    title="Bonus Ledger Platform API",
    description="REST API for sales, deferred bonus crediting and the customer bonus ledger",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BonusSystemError)
async def bonus_system_error_handler(request: Request, exc: BonusSystemError):
    status_code = _ERROR_STATUS.get(type(exc), 400)
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, status_code, exc)
    body = ErrorResponse(detail=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        detail="Validation failed",
        errors=[
            FieldErrorResponse(
                field=".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                message=error.get("msg", ""),
            )
            for error in exc.errors()
        ],
    )
    return JSONResponse(status_code=400, content=body.model_dump())


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "bonus-ledger-platform-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Bonus Ledger Platform API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import bonus_processing, bonuses, pending_bonuses, sales

app.include_router(sales.router, prefix="/api", tags=["Sales"])
app.include_router(bonuses.router, prefix="/api", tags=["Bonuses"])
app.include_router(pending_bonuses.router, prefix="/api", tags=["Pending Bonuses"])
app.include_router(bonus_processing.router, prefix="/api", tags=["Bonus Processing"])
