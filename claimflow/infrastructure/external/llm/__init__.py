"""Language model adapters."""

from claimflow.infrastructure.external.llm.openai_client import OpenAILanguageModel

__all__ = ["OpenAILanguageModel"]
