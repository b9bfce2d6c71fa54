"""Flow engine use cases."""

from claimflow.application.use_cases.flows.dynamic_movements import DynamicMovementService
from claimflow.application.use_cases.flows.flow_definitions import FlowDefinitionService
from claimflow.application.use_cases.flows.flow_evidence import FlowEvidenceService
from claimflow.application.use_cases.flows.flow_execution import FlowExecutionService
from claimflow.application.use_cases.flows.flow_lifecycle import FlowLifecycleService
from claimflow.application.use_cases.flows.flow_queries import FlowQueryService

__all__ = [
    "DynamicMovementService",
    "FlowDefinitionService",
    "FlowEvidenceService",
    "FlowExecutionService",
    "FlowLifecycleService",
    "FlowQueryService",
]
