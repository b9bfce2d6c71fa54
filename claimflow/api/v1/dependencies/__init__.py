"""Presentation-layer dependency injection (composition root).

Routes depend only on these dependencies, not on infrastructure directly.
"""

from claimflow.api.v1.dependencies.flow import (
    FlowRepositories,
    get_dynamic_movement_service,
    get_flow_definition_service,
    get_flow_evidence_service,
    get_flow_execution_service,
    get_flow_instance_store,
    get_flow_lifecycle_service,
    get_flow_query_service,
    get_flow_repositories,
    get_language_model,
    get_prompt_renderer,
)
from claimflow.api.v1.dependencies.tenant import get_tenant_id

__all__ = [
    "FlowRepositories",
    "get_dynamic_movement_service",
    "get_flow_definition_service",
    "get_flow_evidence_service",
    "get_flow_execution_service",
    "get_flow_instance_store",
    "get_flow_lifecycle_service",
    "get_flow_query_service",
    "get_flow_repositories",
    "get_language_model",
    "get_prompt_renderer",
    "get_tenant_id",
]
