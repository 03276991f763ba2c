"""Intent and classification types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

DEFAULT_INTENT_ID = "default_intent"


class ClassificationStatus(str, Enum):
    """Outcome of a classification call."""

    SUCCESS = "success"                        # Intent known, required data present
    INSUFFICIENT_DATA = "insufficient_data"    # Intent known, required data missing
    UNKNOWN_INTENT = "unknown_intent"          # Nothing in the catalog matches


@dataclass(frozen=True)
class FieldSpec:
    """A data field an intent can carry."""

    name: str
    description: str
    required: bool = False
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class IntentDefinition:
    """One entry of the intent catalog."""

    id: str
    description: str
    examples: tuple[str, ...] = ()
    fields: tuple[FieldSpec, ...] = ()

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_INTENT_ID


@dataclass
class ClassificationResult:
    """Result of intent classification."""

    status: ClassificationStatus
    intent: str = DEFAULT_INTENT_ID
    data: dict[str, Any] = field(default_factory=dict)

    # Set on synthetic results produced by error paths
    error: Optional[str] = None

    # Raw LLM output for debugging
    raw_response: Optional[str] = None

    processing_time_ms: float = 0.0

    @classmethod
    def fallback(cls, error: Optional[str] = None, comment: Optional[str] = None) -> "ClassificationResult":
        """Unknown-intent result used whenever classification can't be trusted."""
        data = {"comment": comment} if comment else {}
        return cls(
            status=ClassificationStatus.UNKNOWN_INTENT,
            intent=DEFAULT_INTENT_ID,
            data=data,
            error=error,
        )

    @property
    def is_success(self) -> bool:
        return self.status == ClassificationStatus.SUCCESS

    @property
    def needs_more_data(self) -> bool:
        return self.status == ClassificationStatus.INSUFFICIENT_DATA

    @property
    def is_unknown(self) -> bool:
        return self.status == ClassificationStatus.UNKNOWN_INTENT

    @property
    def missing_required_fields(self) -> list[str]:
        missing = self.data.get("missing_required_fields")
        return list(missing) if isinstance(missing, list) else []

    @property
    def comment(self) -> Optional[str]:
        comment = self.data.get("comment")
        return comment if isinstance(comment, str) and comment.strip() else None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        result = {
            "status": self.status.value,
            "intent": self.intent,
            "data": self.data,
        }
        if self.error:
            result["error"] = self.error
        return result
