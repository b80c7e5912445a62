"""Loan Service API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map LoanServiceError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager
    - One LoanLockRegistry per process, on app.state

Design Decisions:
    - Lifespan over @app.on_event
    - Three error handler layers: LoanServiceError (domain), RequestValidationError
      (Pydantic), Exception (catch-all) — never leaks internal details
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loan_service.api.error_handlers import register_error_handlers
from loan_service.api.routes import health, loans
from loan_service.config import get_settings
from loan_service.infrastructure.database import init_db
from loan_service.infrastructure.observability import (
    RequestLoggingMiddleware, setup_logging,
)
from loan_service.services.loan_locks import LoanLockRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.database_create_schema:
        await manager.create_schema()
    logger.info(f"Loan service API started ({settings.environment})")
    yield
    await manager.dispose()
    logger.info("Loan service API shutting down")


app = FastAPI(
    title="Loan Service API", version="1.0.0", lifespan=lifespan,
)
app.state.loan_locks = LoanLockRegistry()

settings = get_settings()
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(loans.router)

register_error_handlers(app)
