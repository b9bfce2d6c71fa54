"""OpenAILanguageModel response handling with a mocked AsyncOpenAI client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from claimflow.domain.exceptions import AIResponseException
from claimflow.infrastructure.external.llm import OpenAILanguageModel


def _client(content: str | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        message = SimpleNamespace(content=content)
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)])
        )
    return client


async def test_returns_parsed_object_and_sends_json_mode() -> None:
    client = _client('{"passed": true, "reason": "ok"}')
    model = OpenAILanguageModel("sk-test", model="gpt-4o-mini", client=client)

    result = await model.complete_json("system", "user", temperature=0.1)

    assert result == {"passed": True, "reason": "ok"}
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0.1
    assert kwargs["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]


async def test_model_override_per_call() -> None:
    client = _client("{}")
    model = OpenAILanguageModel("sk-test", client=client)
    await model.complete_json("s", "u", model="gpt-4.1")
    assert client.chat.completions.create.await_args.kwargs["model"] == "gpt-4.1"


@pytest.mark.parametrize("content", [None, "", "not json", "[1, 2]"])
async def test_unusable_content_raises(content: str | None) -> None:
    model = OpenAILanguageModel("sk-test", client=_client(content))
    with pytest.raises(AIResponseException):
        await model.complete_json("s", "u")


async def test_provider_error_raises_ai_response_exception() -> None:
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    model = OpenAILanguageModel("sk-test", client=_client(error=error))
    with pytest.raises(AIResponseException) as exc_info:
        await model.complete_json("s", "u")
    assert exc_info.value.error_code == "AI_RESPONSE_ERROR"
