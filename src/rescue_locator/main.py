"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health, location, providers, recommendations
from .config import Settings, settings as default_settings
from .services.recommendations import RecommendationCache, build_recommendation_cache


def create_app(
    config: Settings | None = None,
    cache: RecommendationCache | None = None,
) -> FastAPI:
    config = config or default_settings
    logging.basicConfig(level=config.log_level.upper())

    app = FastAPI(title=config.app_name)
    app.state.recommendation_cache = cache or build_recommendation_cache(config)

    if config.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/")
    def root():
        return {
            "service": config.app_name,
            "status": "running",
            "api_prefix": config.api_prefix,
            "health": f"{config.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=config.api_prefix)
    app.include_router(recommendations.router, prefix=config.api_prefix)
    app.include_router(location.router, prefix=config.api_prefix)
    app.include_router(providers.router, prefix=config.api_prefix)
    return app


app = create_app()
