"""Persistence models: ORM entities and mixins."""

from claimflow.infrastructure.persistence.models.claim_media import (
    AudioObservation,
    ClaimPhoto,
)
from claimflow.infrastructure.persistence.models.flow_definition import FlowDefinition
from claimflow.infrastructure.persistence.models.flow_instance import (
    FlowInstance,
    GateEvaluation,
    MovementCompletion,
    MovementEvidence,
)
from claimflow.infrastructure.persistence.models.mixins import (
    CuidMixin,
    MultiTenantModel,
    TenantMixin,
    TimestampMixin,
    VersionedMixin,
)

__all__ = [
    "AudioObservation",
    "ClaimPhoto",
    "FlowDefinition",
    "FlowInstance",
    "GateEvaluation",
    "MovementCompletion",
    "MovementEvidence",
    "CuidMixin",
    "MultiTenantModel",
    "TenantMixin",
    "TimestampMixin",
    "VersionedMixin",
]
