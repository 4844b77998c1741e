"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import Response

from loyalty_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loyalty_gateway.api.v1 import auth, balance, orders
from loyalty_gateway.config import Settings
from loyalty_gateway.infrastructure.clients.accrual import AccrualClient
from loyalty_gateway.infrastructure.database.models import Base
from loyalty_gateway.infrastructure.database.session import build_engine, build_session_factory, get_db
from loyalty_gateway.infrastructure.observability.logging import setup_logging
from loyalty_gateway.infrastructure.security.tokens import TokenService
from loyalty_gateway.workers.accrual_poller import AccrualPoller
from loyalty_gateway.workers.ledger_reconciler import LedgerReconciler
from loyalty_gateway.workers.scheduler import PeriodicScheduler

API_PREFIX = "/api/user"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the accrual poller and ledger reconciler with the app lifecycle."""
    settings: Settings = app.state.settings
    Base.metadata.create_all(bind=app.state.engine)

    if not settings.enable_workers:
        yield
        return

    client = AccrualClient(
        settings.accrual_system_address,
        timeout=settings.http_timeout_seconds,
        default_retry_after=settings.oracle_default_retry_after_seconds,
        max_retry_after=settings.oracle_max_retry_after_seconds,
    )
    poller = AccrualPoller(
        app.state.session_factory,
        client,
        batch_size=settings.poll_batch_size,
        concurrency=settings.poll_concurrency,
    )
    reconciler = LedgerReconciler(app.state.session_factory)

    scheduler = PeriodicScheduler()
    scheduler.schedule_periodic("accrual_poller", settings.poll_interval_seconds, poller.run_cycle)
    scheduler.schedule_periodic("ledger_reconciler", settings.reconcile_interval_seconds, reconciler.run_cycle)
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        await scheduler.cancel_all()
        await client.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or Settings()
    setup_logging(settings.log_level, settings.service_name)

    app = FastAPI(
        title="Loyalty Gateway",
        description="Loyalty points: order accrual, balances and withdrawals",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.token_service = TokenService(settings.secret_key, settings.token_ttl_minutes)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": "Check json input", "errors": [e["msg"] for e in exc.errors()]},
        )

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get(f"{API_PREFIX}/ping")
    def ping(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            raise HTTPException(status_code=500, detail="Database unavailable")
        return {"status": "ok"}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix=API_PREFIX, tags=["auth"])
    app.include_router(orders.router, prefix=API_PREFIX, tags=["orders"])
    app.include_router(balance.router, prefix=API_PREFIX, tags=["balance"])

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn"""
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.run_host, port=settings.run_port)
