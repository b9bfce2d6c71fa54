"""OpenAI chat completions adapter returning JSON objects. Implements ILanguageModel."""

from __future__ import annotations

import json
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from claimflow.domain.exceptions import AIResponseException
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)


class OpenAILanguageModel:
    """Calls chat.completions with ``response_format={"type": "json_object"}``.

    Provider errors, empty content and non-object JSON are all raised as
    AIResponseException; no retries.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o",
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        model: str | None = None,
    ) -> dict[str, Any]:
        model_name = model or self.model
        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.warning("OpenAI request failed (model %s): %s", model_name, exc)
            raise AIResponseException(f"Language model request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIResponseException("Language model returned an empty response")
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise AIResponseException("Language model returned invalid JSON") from exc
        if not isinstance(parsed, dict):
            raise AIResponseException("Language model returned JSON that is not an object")
        return parsed

    async def close(self) -> None:
        await self._client.close()
