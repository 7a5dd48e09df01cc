"""Dependency providers for FastAPI."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from .config import Settings
from .services.health import HealthService
from .services.resolver import ResolverService


@lru_cache
def load_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_resolver_service(request: Request) -> ResolverService:
    return request.app.state.resolver_service


def get_health_service(resolver: ResolverService = Depends(get_resolver_service)) -> HealthService:
    return HealthService(resolver)


__all__ = [
    "load_settings",
    "get_settings",
    "get_resolver_service",
    "get_health_service",
]
