"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from claimflow.infrastructure or claimflow.api.
"""

from claimflow.application.interfaces.repositories import (
    IClaimMediaRepository,
    IFlowDefinitionRepository,
    IFlowInstanceRepository,
    IGateEvaluationRepository,
    IMovementCompletionRepository,
    IMovementEvidenceRepository,
)
from claimflow.application.interfaces.services import ILanguageModel, IPromptRenderer

__all__ = [
    "IClaimMediaRepository",
    "IFlowDefinitionRepository",
    "IFlowInstanceRepository",
    "IGateEvaluationRepository",
    "ILanguageModel",
    "IMovementCompletionRepository",
    "IMovementEvidenceRepository",
    "IPromptRenderer",
]
