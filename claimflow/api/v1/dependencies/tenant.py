"""Tenant dependency: resolves and validates the tenant header."""

from __future__ import annotations

import re

from fastapi import HTTPException, Request

from claimflow.core.config import get_settings

_TENANT_ID_MAX_LENGTH = 64
_TENANT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{1," + str(_TENANT_ID_MAX_LENGTH) + r"}$")


def is_valid_tenant_id_format(value: str) -> bool:
    """Return True if value is a CUID/UUID-style id (alphanumeric, hyphen, underscore)."""
    return bool(_TENANT_ID_RE.fullmatch(value))


async def get_tenant_id(request: Request) -> str:
    """Resolve tenant ID from the configured header.

    Tenants are owned by the surrounding platform; only the format is checked.
    """
    name = get_settings().tenant_header_name
    value = request.headers.get(name)
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing required header: {name}")
    if not is_valid_tenant_id_format(value):
        raise HTTPException(
            status_code=400,
            detail="Invalid tenant ID format (use alphanumeric, hyphen, underscore; max 64 characters)",
        )
    return value
