"""Flow engine dependencies (composition root).

Every flow service in a request shares one transactional session through
get_flow_repositories; tests override that dependency with in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.interfaces.repositories import (
    IClaimMediaRepository,
    IFlowDefinitionRepository,
    IFlowInstanceRepository,
    IGateEvaluationRepository,
    IMovementCompletionRepository,
    IMovementEvidenceRepository,
)
from claimflow.application.interfaces.services import ILanguageModel, IPromptRenderer
from claimflow.application.services.evidence_validator import (
    EvidenceAggregator,
    EvidenceValidator,
)
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.application.services.flow_selector import FlowSelector
from claimflow.application.services.gate_evaluator import (
    AIGateStrategy,
    GateEvaluator,
    RuleGateStrategy,
)
from claimflow.application.use_cases.flows import (
    DynamicMovementService,
    FlowDefinitionService,
    FlowEvidenceService,
    FlowExecutionService,
    FlowLifecycleService,
    FlowQueryService,
)
from claimflow.core.config import get_settings
from claimflow.infrastructure.persistence.database import get_db_transactional
from claimflow.infrastructure.persistence.repositories import (
    ClaimMediaRepository,
    FlowDefinitionRepository,
    FlowInstanceRepository,
    GateEvaluationRepository,
    MovementCompletionRepository,
    MovementEvidenceRepository,
)
from claimflow.infrastructure.services import FlowPromptRenderer


@dataclass(frozen=True)
class FlowRepositories:
    """Repositories bound to one request session."""

    definitions: IFlowDefinitionRepository
    instances: IFlowInstanceRepository
    completions: IMovementCompletionRepository
    evidence: IMovementEvidenceRepository
    media: IClaimMediaRepository
    gate_evaluations: IGateEvaluationRepository


async def get_flow_repositories(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> FlowRepositories:
    """SQLAlchemy repositories on a transactional session (commit on success)."""
    return FlowRepositories(
        definitions=FlowDefinitionRepository(db),
        instances=FlowInstanceRepository(db),
        completions=MovementCompletionRepository(db),
        evidence=MovementEvidenceRepository(db),
        media=ClaimMediaRepository(db),
        gate_evaluations=GateEvaluationRepository(db),
    )


def get_language_model(request: Request) -> ILanguageModel | None:
    """Shared language model created in lifespan; None when AI is not configured."""
    return getattr(request.app.state, "language_model", None)


@lru_cache
def get_prompt_renderer() -> IPromptRenderer:
    return FlowPromptRenderer()


Repos = Annotated[FlowRepositories, Depends(get_flow_repositories)]
LanguageModel = Annotated[ILanguageModel | None, Depends(get_language_model)]
PromptRenderer = Annotated[IPromptRenderer, Depends(get_prompt_renderer)]


async def get_flow_instance_store(repos: Repos) -> FlowInstanceStore:
    return FlowInstanceStore(
        repos.instances,
        repos.definitions,
        max_attempts=get_settings().flow_state_max_attempts,
    )


Store = Annotated[FlowInstanceStore, Depends(get_flow_instance_store)]


async def get_flow_definition_service(repos: Repos) -> FlowDefinitionService:
    return FlowDefinitionService(repos.definitions, repos.instances)


async def get_flow_lifecycle_service(repos: Repos, store: Store) -> FlowLifecycleService:
    settings = get_settings()
    return FlowLifecycleService(
        repos.instances,
        repos.definitions,
        FlowSelector(repos.definitions, generic_flow_key=settings.generic_flow_key),
        store,
        default_property_type=settings.default_property_type,
    )


async def get_flow_execution_service(
    repos: Repos,
    store: Store,
    language_model: LanguageModel,
    prompt_renderer: PromptRenderer,
) -> FlowExecutionService:
    settings = get_settings()
    gate_evaluator = GateEvaluator(
        RuleGateStrategy(),
        AIGateStrategy(
            language_model,
            prompt_renderer,
            fail_open=settings.gate_ai_fail_open,
            model=settings.openai_model,
        ),
    )
    return FlowExecutionService(
        store,
        repos.completions,
        repos.evidence,
        repos.gate_evaluations,
        gate_evaluator,
        auto_evaluate_gates=settings.auto_evaluate_gates,
    )


async def get_flow_evidence_service(
    repos: Repos,
    store: Store,
    language_model: LanguageModel,
    prompt_renderer: PromptRenderer,
) -> FlowEvidenceService:
    return FlowEvidenceService(
        store,
        repos.evidence,
        EvidenceAggregator(repos.evidence, repos.media, repos.completions),
        EvidenceValidator(
            language_model, prompt_renderer, model=get_settings().openai_model
        ),
    )


async def get_dynamic_movement_service(
    repos: Repos,
    store: Store,
    language_model: LanguageModel,
    prompt_renderer: PromptRenderer,
) -> DynamicMovementService:
    return DynamicMovementService(
        store,
        repos.completions,
        language_model,
        prompt_renderer,
        model=get_settings().openai_model,
    )


async def get_flow_query_service(repos: Repos, store: Store) -> FlowQueryService:
    return FlowQueryService(store, repos.completions, repos.evidence)
