"""Infrastructure services."""

from claimflow.infrastructure.services.prompt_renderer import FlowPromptRenderer

__all__ = ["FlowPromptRenderer"]
