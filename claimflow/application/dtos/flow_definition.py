"""DTOs for flow definitions (versioned inspection templates)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class FlowDefinitionResult:
    """Flow definition read-model (one version row)."""

    id: str
    tenant_id: str | None
    flow_key: str
    name: str
    description: str | None
    perils: list[str]
    property_types: list[str]
    version: int
    is_active: bool
    is_system: bool
    flow_json: dict[str, Any]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FlowDefinitionCreate:
    """Command to create a flow definition (version 1 of a new flow_key, or next version)."""

    flow_key: str
    name: str
    flow_json: dict[str, Any]
    description: str | None = None
    perils: list[str] = field(default_factory=list)
    property_types: list[str] = field(default_factory=list)
    is_active: bool = True
    version: int = 1


@dataclass(frozen=True)
class FlowDefinitionUpdate:
    """Partial update; None means unchanged. A flow_json change creates a new version row."""

    name: str | None = None
    description: str | None = None
    perils: list[str] | None = None
    property_types: list[str] | None = None
    is_active: bool | None = None
    flow_json: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationIssue:
    """One finding from flow_json validation; path is a dotted/indexed location."""

    path: str
    message: str
    severity: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "severity": self.severity}


@dataclass(frozen=True)
class FlowValidationResult:
    is_valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]


@dataclass(frozen=True)
class FlowSelection:
    """Result of matching a claim's peril to a flow definition.

    ``requires_selection`` is True when more than one flow key matched; the
    first candidate is still selected.
    """

    definition: FlowDefinitionResult
    candidates: list[FlowDefinitionResult]
    requires_selection: bool
    used_fallback: bool
    peril_type: str
