"""Core: config, request context, lifespan and exception handlers."""

from claimflow.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
