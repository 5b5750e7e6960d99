"""FastAPI application wiring for the account service."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import request_validation_handler, router as v1_router
from .config import get_settings
from .domain.service import AccountService
from .repository import InMemoryAccountRepository, PostgresAccountRepository

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    current = get_settings()
    if current.storage_backend == "memory":
        logger.warning("account storage is in-memory; data is lost on restart")
        app.state.account_service = AccountService(InMemoryAccountRepository())
        yield
        return

    pool = ConnectionPool(current.database_url, open=False)
    pool.open()
    app.state.pool = pool
    app.state.account_service = AccountService(PostgresAccountRepository(pool))
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
