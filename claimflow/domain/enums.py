"""Domain enumerations for the flow engine.

Enums represent fixed sets of domain values (instance status, evidence
types, gate strategies).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class FlowInstanceStatus(_ValuesMixin, str, Enum):
    """Flow instance lifecycle status.

    Only ``active`` instances accept completions, skips and gate evaluations.
    ``completed`` and ``cancelled`` are terminal.
    """

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowInstanceStatus.COMPLETED, FlowInstanceStatus.CANCELLED)


class CompletionStatus(_ValuesMixin, str, Enum):
    """Status recorded on a movement completion audit row."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


class EvidenceType(_ValuesMixin, str, Enum):
    """Kinds of evidence that can be attached to a movement."""

    PHOTO = "photo"
    AUDIO = "audio"
    MEASUREMENT = "measurement"
    SKETCH = "sketch"
    NOTE = "note"


class Criticality(_ValuesMixin, str, Enum):
    """Movement criticality declared in the flow template."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GateType(_ValuesMixin, str, Enum):
    """Blocking gates hold the phase on failure; advisory gates only report."""

    BLOCKING = "blocking"
    ADVISORY = "advisory"


class GateEvaluationType(_ValuesMixin, str, Enum):
    """Gate evaluation strategy."""

    SIMPLE = "simple"
    AI = "ai"


class GateResult(_ValuesMixin, str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class NextStepKind(_ValuesMixin, str, Enum):
    """Tag of the result returned by the movement executor."""

    MOVEMENT = "movement"
    GATE = "gate"
    PHASE_ADVANCED = "phase_advanced"
    COMPLETE = "complete"
