"""Tenant context middleware: exposes the tenant header to logging for the request."""

from __future__ import annotations

from typing import Callable

from claimflow.core.request_context import current_tenant_id
from claimflow.middleware.request_id import get_header


def TenantContextMiddleware(app: Callable, header_name: str = "X-Tenant-ID") -> Callable:
    """Raw ASGI. The header is only recorded here; routes validate it via get_tenant_id."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        token = current_tenant_id.set(get_header(scope, header_name))
        try:
            await app(scope, receive, send)
        finally:
            current_tenant_id.reset(token)

    return asgi_app
