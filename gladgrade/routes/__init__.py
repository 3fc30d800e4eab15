"""
Consolidated routes module.

Routes remain in their domain directories but are registered from here.

Usage:
    from gladgrade.routes import register_all_routes
    register_all_routes(app, api_prefix="/api")
"""
from typing import List, Tuple
from fastapi import APIRouter

from gladgrade.audit.routes import router as audit_router
from gladgrade.prospects.routes import router as prospect_router


# Each tuple: (router, prefix, tags)
ROUTER_CONFIGS: List[Tuple[APIRouter, str, List[str]]] = [
    (audit_router, "/audit", ["Audit"]),
    (prospect_router, "/sales", ["Sales Pipeline"]),
]


def register_all_routes(app, api_prefix: str = "/api") -> None:
    """
    Register all routers with the FastAPI app.

    Args:
        app: FastAPI application instance
        api_prefix: API prefix (default: /api)
    """
    for router, prefix, tags in ROUTER_CONFIGS:
        full_prefix = f"{api_prefix}{prefix}" if prefix else api_prefix
        app.include_router(router, prefix=full_prefix, tags=tags)


__all__ = [
    "audit_router",
    "prospect_router",
    "ROUTER_CONFIGS",
    "register_all_routes",
]
