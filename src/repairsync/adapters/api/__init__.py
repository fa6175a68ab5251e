"""Repair Minder API client: request execution, envelope schema and routes."""

from __future__ import annotations

from .executor import RequestExecutor
from .routes import DEFAULT_ROUTES, RouteTable, build_default_router
from .schema import ApiResponse, ErrorBody, PaginatedResponse, PaginationMeta, TokenPair

__all__ = [
    "DEFAULT_ROUTES",
    "ApiResponse",
    "ErrorBody",
    "PaginatedResponse",
    "PaginationMeta",
    "RequestExecutor",
    "RouteTable",
    "TokenPair",
    "build_default_router",
]
