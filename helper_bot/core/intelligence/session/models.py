"""
Dialog state and conversation turn models.

Nothing here is persisted as a record: DialogState is assembled from
independent dialog meta keys and ConversationTurn wraps a platform message.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .state import DialogPhase


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO strings, epoch milliseconds or datetimes into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def meta_value(raw: Any) -> Any:
    """Unwrap a ``{value, dataType}`` meta entry into its plain value."""
    if isinstance(raw, dict) and "value" in raw:
        return raw["value"]
    return raw


def as_bool(value: Any) -> bool:
    """Coerce a stored meta value into a bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


class MetaKey:
    """Meta keys written by the bot."""

    # Dialog scope
    CATEGORY = "category"
    BOT_HANDLING = "botHandling"
    LAST_INTENT = "lastIntent"
    CONVERSATION_ID = "botConversationId"

    # Message scope
    BOT_QUESTION = "botQuestion"
    QUESTION_TYPE = "questionType"
    RELATED_INTENT = "relatedIntent"
    DIALOG_RESPONSE = "botDialogResponse"


@dataclass
class MessageTags:
    """Bot tags attached to a single message."""

    is_bot_question: bool = False
    is_user_response_in_session: bool = False
    related_intent: Optional[str] = None
    session_id: Optional[str] = None
    question_type: Optional[str] = None

    @classmethod
    def from_meta(cls, meta: Optional[dict]) -> "MessageTags":
        """Build tags from a message meta mapping."""
        meta = meta or {}
        return cls(
            is_bot_question=as_bool(meta_value(meta.get(MetaKey.BOT_QUESTION))),
            is_user_response_in_session=as_bool(meta_value(meta.get(MetaKey.DIALOG_RESPONSE))),
            related_intent=meta_value(meta.get(MetaKey.RELATED_INTENT)),
            session_id=meta_value(meta.get(MetaKey.CONVERSATION_ID)),
            question_type=meta_value(meta.get(MetaKey.QUESTION_TYPE)),
        )


@dataclass
class ConversationTurn:
    """A dialog message as seen by the bot."""

    message_id: str
    sender_id: Optional[str] = None
    content: str = ""
    created_at: Optional[datetime] = None
    dialog_id: Optional[str] = None
    tags: MessageTags = field(default_factory=MessageTags)

    @classmethod
    def from_platform(cls, message: dict) -> "ConversationTurn":
        """Create from a platform message dict."""
        return cls(
            message_id=str(message.get("messageId") or message.get("id") or ""),
            sender_id=message.get("senderId"),
            content=message.get("content") or "",
            created_at=_parse_timestamp(message.get("createdAt")),
            dialog_id=message.get("dialogId"),
            tags=MessageTags.from_meta(message.get("meta")),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "messageId": self.message_id,
            "senderId": self.sender_id,
            "content": self.content,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class DialogState:
    """
    Bot state of one dialog.

    Assembled from four independently read meta keys, so it is only
    eventually consistent with concurrent writers.
    """

    dialog_id: str
    category: Optional[str] = None
    bot_handling: bool = False
    last_intent: Optional[str] = None
    conversation_id: Optional[str] = None

    @property
    def phase(self) -> DialogPhase:
        if self.category:
            return DialogPhase.RESOLVED
        if self.bot_handling:
            return DialogPhase.AWAITING_SLOT_DATA
        return DialogPhase.NO_CATEGORY

    @property
    def is_categorized(self) -> bool:
        return bool(self.category)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "dialog_id": self.dialog_id,
            "category": self.category,
            "bot_handling": self.bot_handling,
            "last_intent": self.last_intent,
            "conversation_id": self.conversation_id,
            "phase": self.phase.value,
        }
