"""
Portfolio API application factory.

Wires settings, database, price caches and routers into a
FastAPI app. Everything stateful lives on app.state so tests
can build isolated apps.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from position_ledger import create_price_caches
from portfolio_api.config import ApiSettings
from portfolio_api.routers import exit_strategies, portfolio
from storage.database import create_all_tables, create_database_engine, create_session_factory


logger = logging.getLogger(__name__)


def create_app(settings: Optional[ApiSettings] = None) -> FastAPI:
    settings = settings or ApiSettings.from_env()

    app = FastAPI(
        title="Trading Journal Portfolio API",
        description="Spot positions, profit and loss, and percentage exit strategies.",
        version="1.0.0",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    price_cache_config = settings.price_cache_config()

    engine = create_database_engine(settings.database_url, echo=settings.database_echo)
    create_all_tables(engine)

    price_cache, negative_price_cache = create_price_caches(price_cache_config)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.price_cache = price_cache
    app.state.negative_price_cache = negative_price_cache

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(portfolio.router)
    app.include_router(exit_strategies.router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Portfolio API is running"}

    logger.info(f"Portfolio API created ({settings.environment})")
    return app
