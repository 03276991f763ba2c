"""Dialog state module."""

from .state import DialogPhase, can_transition, get_valid_transitions, is_terminal_state
from .models import ConversationTurn, DialogState, MessageTags, MetaKey
from .store import ConversationStateStore, MetaScope, new_conversation_id

__all__ = [
    # State
    "DialogPhase",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    # Models
    "ConversationTurn",
    "DialogState",
    "MessageTags",
    "MetaKey",
    # Store
    "ConversationStateStore",
    "MetaScope",
    "new_conversation_id",
]
