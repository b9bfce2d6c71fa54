"""Domain exceptions for the flow engine.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers.
"""

from typing import Any


class ClaimFlowException(Exception):
    """Base exception for all claimflow errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the API exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(ClaimFlowException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(ClaimFlowException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'flow_instance', 'movement').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class NoFlowDefinitionException(ClaimFlowException):
    """Raised when no active flow definition (nor the generic fallback) matches a peril."""

    def __init__(self, peril_type: str, property_type: str | None = None) -> None:
        super().__init__(
            f"No flow definition for peril type: {peril_type}",
            "NO_FLOW_DEFINITION",
            {"peril_type": peril_type, "property_type": property_type},
        )


class FlowDefinitionValidationException(ClaimFlowException):
    """Raised when a flow_json document fails structural or semantic validation."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        """Initialize with the list of error issues ({path, message, severity})."""
        super().__init__(
            "Flow definition is invalid",
            "FLOW_DEFINITION_INVALID",
            {"errors": errors},
        )


class FlowDefinitionInUseException(ClaimFlowException):
    """Raised when deleting a flow definition that flow instances still reference."""

    def __init__(self, definition_id: str, instance_count: int) -> None:
        super().__init__(
            f"Flow definition {definition_id} is used by {instance_count} flow instance(s)",
            "FLOW_DEFINITION_IN_USE",
            {"flow_definition_id": definition_id, "instance_count": instance_count},
        )


class FlowStateException(ClaimFlowException):
    """Raised when an operation is not allowed in the instance's current state.

    Examples: completing a movement of another phase, mutating a cancelled
    or completed instance.
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, "FLOW_STATE_ERROR", details)


class FlowInstanceConflictException(ClaimFlowException):
    """Raised when a concurrent request won the instance version update (optimistic lock)."""

    def __init__(self, flow_instance_id: str, expected_version: int) -> None:
        super().__init__(
            "Flow instance was updated by another request; retry.",
            "FLOW_INSTANCE_CONFLICT",
            {"flow_instance_id": flow_instance_id, "expected_version": expected_version},
        )


class AIResponseException(ClaimFlowException):
    """Raised when the language model call fails or returns an unusable response."""

    def __init__(self, message: str, prompt_key: str | None = None) -> None:
        details = {"prompt_key": prompt_key} if prompt_key else {}
        super().__init__(message, "AI_RESPONSE_ERROR", details)


class SqlNotConfiguredException(ClaimFlowException):
    """Raised when an operation requires Postgres but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
