"""Per-request context: tenant and request id.

The ASGI middleware sets these for the duration of a request; the logging
filter in claimflow.shared.logging stamps them onto every record.
"""

from contextvars import ContextVar

current_tenant_id: ContextVar[str | None] = ContextVar("current_tenant_id", default=None)
current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


def get_request_context() -> dict[str, str | None]:
    """Return the tenant and request id of the running request (None outside one)."""
    return {
        "tenant_id": current_tenant_id.get(),
        "request_id": current_request_id.get(),
    }
