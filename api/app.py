"""
Read API - Application factory.

============================================================
RESPONSIBILITY
============================================================
Serves the canonical chain records and metric series.
Read-only: every write goes through the ingestion passes.

Routes (all under /api):
- GET /chains, /chains/categories, /chains/{id}, /chains/{id}/validators
- GET /chains/{id}/metrics/{metric}[/latest]
- GET /metrics/{metric}/network[/latest]
- GET /icm/daily, /icm/latest
- GET /health
============================================================
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from api.routers import chains, health, icm, metrics
from core.clock import ClockProtocol, SystemClock

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app(
    session_factory: sessionmaker,
    clock: Optional[ClockProtocol] = None,
    history_days: int = 30,
    icm_history_days: int = 90,
) -> FastAPI:
    """
    Build the FastAPI application around a session factory.
    """
    app = FastAPI(
        title="Chain Metrics API",
        description="Canonical per-network records, daily metric series and cross-chain message counts.",
        version="1.0.0",
    )

    app.state.session_factory = session_factory
    app.state.clock = clock or SystemClock()
    app.state.history_days = history_days
    app.state.icm_history_days = icm_history_days

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(chains.router, prefix=API_PREFIX)
    app.include_router(metrics.router, prefix=API_PREFIX)
    app.include_router(icm.router, prefix=API_PREFIX)
    app.include_router(health.router, prefix=API_PREFIX)

    @app.get("/", tags=["Root"])
    def root():
        return {"service": "Chain Metrics API", "version": "1.0.0", "docs": "/docs"}

    logger.info("Read API initialised")
    return app
