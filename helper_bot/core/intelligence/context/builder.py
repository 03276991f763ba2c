"""Build classifier context from dialog turns."""

import logging
from datetime import datetime, timezone
from typing import Iterable

from helper_bot.core.intelligence.session.models import ConversationTurn, DialogState
from helper_bot.core.intelligence.session.store import ConversationStateStore

logger = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(turn: ConversationTurn) -> datetime:
    # Turns without a timestamp sort first
    return turn.created_at or _EARLIEST


def merge_turns(*groups: Iterable[ConversationTurn]) -> list[ConversationTurn]:
    """
    Merge turn sets into one chronological list.

    Deduplicates by message id (first occurrence wins) and sorts by
    creation time ascending. Turns without an id are all kept.
    """
    seen: set[str] = set()
    merged = []
    for group in groups:
        for turn in group:
            if turn.message_id:
                if turn.message_id in seen:
                    continue
                seen.add(turn.message_id)
            merged.append(turn)
    merged.sort(key=_sort_key)
    return merged


class ContextBuilder:
    """
    Assembles the context turns sent with a classification request.

    Inside a clarification session only that session's exchange is used;
    otherwise the last ``max_history_turns`` dialog messages.
    """

    def __init__(self, store: ConversationStateStore, max_history_turns: int = 10):
        """Initialize context builder.

        Args:
            store: Conversation state store
            max_history_turns: Dialog messages used outside a session
        """
        self._store = store
        self.max_history_turns = max_history_turns

    async def build(self, state: DialogState) -> list[ConversationTurn]:
        """Context turns for the dialog's current phase, oldest first."""
        if state.bot_handling and state.conversation_id:
            return await self.session_turns(state.dialog_id, state.conversation_id)
        return await self.recent_turns(state.dialog_id)

    async def session_turns(self, dialog_id: str, conversation_id: str) -> list[ConversationTurn]:
        """Bot questions and user replies of one session, merged."""
        questions, replies = await self._store.session_turns(dialog_id, conversation_id)
        turns = merge_turns(questions, replies)
        logger.debug(
            f"Session context for {dialog_id}: {len(questions)} questions, "
            f"{len(replies)} replies, {len(turns)} unique"
        )
        return turns

    async def recent_turns(self, dialog_id: str) -> list[ConversationTurn]:
        """Last N dialog messages, oldest first."""
        turns = await self._store.recent_turns(dialog_id, self.max_history_turns)
        return merge_turns(turns)[-self.max_history_turns:]
