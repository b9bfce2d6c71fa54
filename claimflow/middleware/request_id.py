"""Request ID middleware.

Forwards a safe client X-Request-ID or generates one, echoes it on the
response and publishes it to the request context for log records.
"""

import re
import uuid
from typing import Callable

from claimflow.core.request_context import current_request_id

_REQUEST_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


def get_header(scope: dict, name: str) -> str | None:
    """First value of header ``name`` from an ASGI scope (case-insensitive)."""
    wanted = name.lower().encode()
    for key, value in scope.get("headers", []):
        if key.lower() == wanted:
            return value.decode("utf-8", errors="replace")
    return None


def sanitize_request_id(raw: str | None) -> str:
    """Keep ``raw`` when it is short and log-safe, else return a fresh UUID."""
    candidate = (raw or "").strip()
    if _REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    """Raw ASGI, so streaming responses are not buffered."""
    header_bytes = header_name.encode()

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        request_id = sanitize_request_id(get_header(scope, header_name))
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), (header_bytes, request_id.encode())]
            await send(message)

        token = current_request_id.set(request_id)
        try:
            await app(scope, receive, send_with_request_id)
        finally:
            current_request_id.reset(token)

    return asgi_app
