"""Domain entities and aggregates.

Pure domain models; no ORM or persistence concerns.
"""

from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity, NextStep

__all__ = [
    "FlowDefinitionEntity",
    "FlowInstanceEntity",
    "NextStep",
]
