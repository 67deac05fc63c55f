"""
FastAPI application for Intent Attest.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .artifacts.routes import router as artifact_router
from .auth.routes import router as auth_router
from .config import get_settings, parse_csv
from .db.base import get_db, init_database
from .errors import AuthenticationError, IntentAttestError, StoreError
from .logging_config import configure_logging
from .proofs.routes import router as proof_router

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


def _version() -> str:
    try:
        return importlib.metadata.version("intent-attest")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting Intent Attest", environment=settings.environment)

    try:
        init_database()
    except SQLAlchemyError as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    yield

    logger.info("Shutting down Intent Attest")


app = FastAPI(
    title="Intent Attest",
    description="Wallet-authenticated campaign artifacts and intent proofs",
    version=_version(),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_csv(settings.cors_allow_origins) or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntentAttestError)
async def intent_attest_error_handler(
    request: Request, exc: IntentAttestError
) -> JSONResponse:
    """Render domain errors as {error, code, ...} with their HTTP status."""
    headers = None
    if isinstance(exc, StoreError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    if isinstance(exc, AuthenticationError):
        logger.info(
            "Request rejected", path=request.url.path, code=exc.code, reason=str(exc)
        )
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


# Health and Info Endpoints
@app.get("/healthz")
def healthz(db: Session = Depends(get_db)) -> Any:
    """Health check endpoint, including store reachability."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(status_code=503, content={"ok": False, "db": "unavailable"})
    return {"ok": True, "db": "ok"}


@app.get("/version")
def version() -> Dict[str, str]:
    """Return the version of the application."""
    return {"version": _version()}


app.include_router(artifact_router)
app.include_router(proof_router)
app.include_router(auth_router)
