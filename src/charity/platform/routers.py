"""
Centralized router registration for all API endpoints.

No route authenticates; the acting user is taken from the actor header.
"""

import importlib
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from fastapi import FastAPI

from charity.platform.settings import settings

logger = structlog.get_logger(__name__)

API_PREFIX = settings.api.prefix


@dataclass
class RouterConfig:
    """Configuration for a router to be registered."""

    module_path: str
    router_name: str
    prefix: str
    tags: Sequence[str | Enum] | None
    description: str = ""


ROUTER_CONFIGS = [
    RouterConfig(
        module_path="charity.platform.tickets.router",
        router_name="router",
        prefix=API_PREFIX,
        tags=["Tickets"],
        description="Visit ticket lifecycle",
    ),
    RouterConfig(
        module_path="charity.platform.audit.router",
        router_name="router",
        prefix=f"{API_PREFIX}/audit",
        tags=["Audit"],
        description="Audit trail",
    ),
]


def _register_router(app: FastAPI, config: RouterConfig) -> bool:
    """Register a single router with the application.

    Returns:
        True if registration successful, False otherwise.
    """
    try:
        module = importlib.import_module(config.module_path)
        router = getattr(module, config.router_name)

        router_tags = list(config.tags) if config.tags is not None else None
        app.include_router(router, prefix=config.prefix, tags=router_tags)

        logger.info("router.registered", description=config.description, prefix=config.prefix)
        return True

    except ImportError as e:
        logger.warning("router.unavailable", description=config.description, error=str(e))
        return False
    except AttributeError as e:
        logger.error(
            "router.not_found",
            router_name=config.router_name,
            module=config.module_path,
            error=str(e),
        )
        return False


def register_routers(app: FastAPI) -> None:
    """
    Register all API routers with the application.

    Structure:
    - /api/v1/tickets/* - ticket lifecycle
    - /api/v1/audit/* - audit trail
    - /health - public health endpoint
    """
    registered_count = 0
    failed_count = 0

    for config in ROUTER_CONFIGS:
        if _register_router(app, config):
            registered_count += 1
        else:
            failed_count += 1

    logger.info("router.registration.complete", registered=registered_count, failed=failed_count)


def get_api_info() -> dict[str, Any]:
    """Get information about registered API endpoints."""
    endpoints: dict[str, str] = {}
    for config in ROUTER_CONFIGS:
        name = str(config.tags[0]).lower() if config.tags else config.module_path
        endpoints[name] = config.prefix

    return {
        "version": "v1",
        "base_path": API_PREFIX,
        "endpoints": endpoints,
        "public_endpoints": ["/health", "/docs", "/redoc", "/openapi.json"],
    }


def get_registered_routers() -> list[RouterConfig]:
    """Get list of all configured routers."""
    return ROUTER_CONFIGS.copy()
