"""Repositories: SQLAlchemy implementations of the application ports."""

from claimflow.infrastructure.persistence.repositories.claim_media_repo import (
    ClaimMediaRepository,
)
from claimflow.infrastructure.persistence.repositories.flow_definition_repo import (
    FlowDefinitionRepository,
)
from claimflow.infrastructure.persistence.repositories.flow_instance_repo import (
    FlowInstanceRepository,
)
from claimflow.infrastructure.persistence.repositories.gate_evaluation_repo import (
    GateEvaluationRepository,
)
from claimflow.infrastructure.persistence.repositories.movement_repo import (
    MovementCompletionRepository,
    MovementEvidenceRepository,
)

__all__ = [
    "ClaimMediaRepository",
    "FlowDefinitionRepository",
    "FlowInstanceRepository",
    "GateEvaluationRepository",
    "MovementCompletionRepository",
    "MovementEvidenceRepository",
]
