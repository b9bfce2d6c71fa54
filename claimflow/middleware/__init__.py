"""ASGI middleware: request id and tenant context."""

from claimflow.middleware.request_id import RequestIDMiddleware
from claimflow.middleware.tenant_context import TenantContextMiddleware

__all__ = ["RequestIDMiddleware", "TenantContextMiddleware"]
