"""Service interfaces (ports) for the application layer.

Protocols define contracts for application services (DIP).
"""

from __future__ import annotations

from typing import Any, Protocol


class ILanguageModel(Protocol):
    """Protocol for a chat model that answers with a JSON object.

    Implementations wrap every provider or parsing failure in
    AIResponseException, so callers only handle that one type.
    """

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        model: str | None = None,
    ) -> dict[str, Any]:
        """Return the parsed JSON object from the model response."""


class IPromptRenderer(Protocol):
    """Protocol for rendering the flow engine prompt templates."""

    def has_prompt(self, prompt_key: str) -> bool:
        """Return whether a template exists for the key."""

    def render(self, prompt_key: str, context: dict[str, Any]) -> tuple[str, str, float]:
        """Return (system_prompt, user_prompt, temperature) for the key."""
