"""Validation boundary for dynamic movements.

Caller input and language-model output both pass through these strict
models before anything is merged into an instance's movement list.
Unknown keys are rejected so malformed output cannot leak into state.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from claimflow.domain.enums import Criticality
from claimflow.domain.value_objects.flow import normalize_evidence_type


class EvidenceRequirementPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    type: str
    description: str | None = Field(None, max_length=500)
    is_required: bool = True
    quantity_min: int = Field(1, ge=0, le=100)
    quantity_max: int | None = Field(None, ge=0, le=100)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        evidence_type = normalize_evidence_type(v)
        if evidence_type is None:
            raise ValueError(f"unknown evidence type: {v}")
        return evidence_type.value

    @model_validator(mode="after")
    def validate_quantities(self) -> "EvidenceRequirementPayload":
        if self.quantity_max is not None and self.quantity_min > self.quantity_max:
            raise ValueError("quantity_min cannot exceed quantity_max")
        return self


class DynamicMovementPayload(BaseModel):
    """One dynamic movement as supplied by a caller or generated by the model."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    is_required: bool = True
    criticality: Criticality = Criticality.MEDIUM
    guidance: dict[str, Any] = Field(default_factory=dict)
    evidence_requirements: list[EvidenceRequirementPayload] = Field(
        default_factory=list, max_length=10
    )
    estimated_minutes: int | None = Field(None, ge=0, le=480)


class MovementSuggestionPayload(DynamicMovementPayload):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    rationale: str | None = Field(None, max_length=1000)


class MovementSuggestionsPayload(BaseModel):
    """Model response for suggestions: ``{"suggestions": [...]}``."""

    model_config = ConfigDict(extra="ignore")

    suggestions: list[dict] = Field(default_factory=list, max_length=20)
