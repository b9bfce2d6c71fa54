"""Application lifespan: startup and shutdown.

Only wiring of infrastructure (language model client, DB engine dispose);
no business logic here.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from claimflow.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared OpenAI client on startup; close it and the engine on shutdown.

    app.state.language_model is None when AI is disabled or no API key is set;
    the engine then uses its deterministic fallbacks.
    """
    settings = get_settings()

    # ---- Startup ----
    app.state.language_model = None
    if settings.ai_configured and settings.openai_api_key is not None:
        from claimflow.infrastructure.external.llm import OpenAILanguageModel

        app.state.language_model = OpenAILanguageModel(
            settings.openai_api_key.get_secret_value(),
            model=settings.openai_model,
            timeout=settings.openai_timeout_seconds,
        )
        logger.info("OpenAI language model configured (%s)", settings.openai_model)
    else:
        logger.info("AI features disabled; gates and evidence use rule-based fallbacks")

    yield

    # ---- Shutdown ----
    if getattr(app.state, "language_model", None) is not None:
        await app.state.language_model.close()
        app.state.language_model = None
        logger.info("OpenAI client closed")

    from claimflow.infrastructure.persistence import database

    if getattr(database, "engine", None) is not None:
        await database.dispose_engine()
        logger.info("Database engine disposed")
