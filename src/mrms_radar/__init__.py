"""Application factory and router wiring for the MRMS radar API."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .deps import get_resolver_service, get_settings, load_settings
from .routers import health, radar
from .services.resolver import ResolverService


def create_app(
    settings: Settings | None = None,
    *,
    resolver: ResolverService | None = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application.

    The resolver's background refresh timer runs for the lifetime of the
    application and is stopped on shutdown.
    """
    settings = settings or load_settings()
    resolver = resolver or ResolverService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.background_refresh:
            await resolver.start()
        try:
            yield
        finally:
            await resolver.close()

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.resolver_service = resolver

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(radar.router)

    return app


app = create_app()

__all__ = ["create_app", "app", "get_settings", "get_resolver_service"]
