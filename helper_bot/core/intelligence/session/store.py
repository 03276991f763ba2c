"""
Conversation state store over the platform meta contract.

Reads degrade to "absent" and writes report success as a bool, so a
flaky platform never aborts the handling of an event.
"""

import asyncio
import logging
import random
import string
import time
from enum import Enum
from typing import Any, Optional

from helper_bot.infra.platform import PlatformClient
from .models import ConversationTurn, DialogState, MetaKey, as_bool, meta_value

logger = logging.getLogger(__name__)

QUESTION_TYPE_MISSING_FIELD = "missing_field"


class MetaScope(str, Enum):
    """Entity scope of a meta tag."""

    DIALOG = "dialog"
    MESSAGE = "message"


def new_conversation_id(dialog_id: str) -> str:
    """Create a clarification session id unique per dialog and session."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"conv_{dialog_id}_{int(time.time() * 1000)}_{suffix}"


class ConversationStateStore:
    """
    Typed accessor for dialog and message bot state.

    Dialog keys: category, botHandling, lastIntent, botConversationId.
    Message keys: botQuestion, questionType, relatedIntent,
    botConversationId, botDialogResponse.
    """

    def __init__(self, platform: PlatformClient, session_history_limit: int = 50):
        """Initialize store.

        Args:
            platform: Platform API client
            session_history_limit: Max tagged messages fetched per query
        """
        self._platform = platform
        self._history_limit = session_history_limit

    # === Generic key access ===

    async def get(self, scope: MetaScope, entity_id: str, key: str) -> Any:
        """Read one meta key; None when absent or on any failure."""
        try:
            meta = await self._platform.get_meta(scope.value, entity_id)
        except Exception as e:
            logger.warning(f"Failed to read {scope.value} meta {key} of {entity_id}: {e}")
            return None
        return meta_value(meta.get(key))

    async def set(
        self,
        scope: MetaScope,
        entity_id: str,
        key: str,
        value: Any,
        data_type: Optional[str] = None,
    ) -> bool:
        """Write one meta key; False on failure."""
        try:
            await self._platform.set_meta(scope.value, entity_id, key, value, data_type=data_type)
            logger.debug(f"Set {scope.value} meta {key}={value!r} on {entity_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to write {scope.value} meta {key} on {entity_id}: {e}")
            return False

    # === Dialog state ===

    async def get_category(self, dialog_id: str) -> Optional[str]:
        return await self.get(MetaScope.DIALOG, dialog_id, MetaKey.CATEGORY) or None

    async def set_category(self, dialog_id: str, category: str) -> bool:
        return await self.set(MetaScope.DIALOG, dialog_id, MetaKey.CATEGORY, category, "string")

    async def get_bot_handling(self, dialog_id: str) -> bool:
        return as_bool(await self.get(MetaScope.DIALOG, dialog_id, MetaKey.BOT_HANDLING))

    async def set_bot_handling(self, dialog_id: str, handling: bool) -> bool:
        return await self.set(MetaScope.DIALOG, dialog_id, MetaKey.BOT_HANDLING, handling, "boolean")

    async def get_last_intent(self, dialog_id: str) -> Optional[str]:
        return await self.get(MetaScope.DIALOG, dialog_id, MetaKey.LAST_INTENT) or None

    async def set_last_intent(self, dialog_id: str, intent: str) -> bool:
        return await self.set(MetaScope.DIALOG, dialog_id, MetaKey.LAST_INTENT, intent, "string")

    async def get_conversation_id(self, dialog_id: str) -> Optional[str]:
        return await self.get(MetaScope.DIALOG, dialog_id, MetaKey.CONVERSATION_ID) or None

    async def set_conversation_id(self, dialog_id: str, conversation_id: str) -> bool:
        return await self.set(
            MetaScope.DIALOG, dialog_id, MetaKey.CONVERSATION_ID, conversation_id, "string"
        )

    async def clear_conversation_id(self, dialog_id: str) -> bool:
        """End the clarification session so the next one gets a fresh id."""
        return await self.set(MetaScope.DIALOG, dialog_id, MetaKey.CONVERSATION_ID, None)

    async def get_dialog_state(self, dialog_id: str) -> DialogState:
        """
        Read the four dialog keys concurrently.

        Each read is independent and degrades on its own; the result is
        eventually consistent with concurrent writers.
        """
        category, bot_handling, last_intent, conversation_id = await asyncio.gather(
            self.get_category(dialog_id),
            self.get_bot_handling(dialog_id),
            self.get_last_intent(dialog_id),
            self.get_conversation_id(dialog_id),
        )
        return DialogState(
            dialog_id=dialog_id,
            category=category,
            bot_handling=bot_handling,
            last_intent=last_intent,
            conversation_id=conversation_id,
        )

    # === Message tags ===

    async def mark_question(
        self,
        message_id: str,
        related_intent: str,
        conversation_id: str,
    ) -> list[str]:
        """
        Tag a sent message as a bot clarification question.

        Returns:
            Keys that failed to write (empty on success)
        """
        writes = [
            (MetaKey.BOT_QUESTION, True, "boolean"),
            (MetaKey.QUESTION_TYPE, QUESTION_TYPE_MISSING_FIELD, "string"),
            (MetaKey.RELATED_INTENT, related_intent, "string"),
            (MetaKey.CONVERSATION_ID, conversation_id, "string"),
        ]
        failed = []
        for key, value, data_type in writes:
            if not await self.set(MetaScope.MESSAGE, message_id, key, value, data_type):
                failed.append(key)
        return failed

    async def mark_session_reply(self, message_id: str, conversation_id: str) -> list[str]:
        """
        Tag a user message as a reply inside a clarification session.

        Returns:
            Keys that failed to write (empty on success)
        """
        failed = []
        if not await self.set(MetaScope.MESSAGE, message_id, MetaKey.DIALOG_RESPONSE, True, "boolean"):
            failed.append(MetaKey.DIALOG_RESPONSE)
        if not await self.set(
            MetaScope.MESSAGE, message_id, MetaKey.CONVERSATION_ID, conversation_id, "string"
        ):
            failed.append(MetaKey.CONVERSATION_ID)
        return failed

    # === Turn queries ===

    async def _query_turns(
        self,
        dialog_id: str,
        limit: int,
        meta: Optional[dict] = None,
        newest_first: bool = True,
    ) -> list[ConversationTurn]:
        try:
            messages = await self._platform.list_messages(
                dialog_id, limit=limit, newest_first=newest_first, meta=meta
            )
        except Exception as e:
            logger.warning(f"Failed to list messages of dialog {dialog_id} (meta={meta}): {e}")
            return []
        return [ConversationTurn.from_platform(m) for m in messages if isinstance(m, dict)]

    async def question_turns(self, dialog_id: str) -> list[ConversationTurn]:
        """All bot questions asked in the dialog, across sessions."""
        return await self._query_turns(
            dialog_id, self._history_limit, meta={MetaKey.BOT_QUESTION: True}
        )

    async def session_turns(self, dialog_id: str, conversation_id: str) -> tuple[
        list[ConversationTurn], list[ConversationTurn]
    ]:
        """
        Bot questions and user replies of one clarification session.

        Returns:
            (questions, replies); the sets may overlap
        """
        questions, replies = await asyncio.gather(
            self._query_turns(
                dialog_id,
                self._history_limit,
                meta={MetaKey.CONVERSATION_ID: conversation_id, MetaKey.BOT_QUESTION: True},
            ),
            self._query_turns(
                dialog_id,
                self._history_limit,
                meta={MetaKey.CONVERSATION_ID: conversation_id, MetaKey.DIALOG_RESPONSE: True},
            ),
        )
        return questions, replies

    async def recent_turns(self, dialog_id: str, limit: int) -> list[ConversationTurn]:
        """Last ``limit`` dialog messages, newest first as returned by the platform."""
        return await self._query_turns(dialog_id, limit)
