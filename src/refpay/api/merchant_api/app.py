"""FastAPI application configuration (Merchant API)."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry, make_asgi_app, multiprocess

from ...envs.merchant_env import Settings, get_settings
from ...infrastructure.ledger.rpc_client import LedgerClient
from .routers import products, transactions


def _metrics_app():
    """Prometheus endpoint; sums every worker's samples in multiprocess mode."""
    if "PROMETHEUS_MULTIPROC_DIR" not in os.environ:
        return make_asgi_app()
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    return make_asgi_app(registry=registry)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # One read-only ledger client for every request in this process.
        async with LedgerClient(
            settings.ledger_rpc_url, timeout=settings.ledger_timeout
        ) as ledger_client:
            app.state.ledger_client = ledger_client
            yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="RefPay merchant transaction request API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Include routers
    app.include_router(transactions.router, prefix="/api/v1")
    app.include_router(products.router, prefix="/api/v1")
    app.mount("/metrics", _metrics_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name} Merchant API",
            "version": settings.app_version,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": f"{settings.app_name} Merchant",
            "version": settings.app_version,
        }

    return app
