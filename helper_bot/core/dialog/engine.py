"""
Slot-Filling Orchestrator.

Decides, for each new user message, whether a dialog is already
categorized, whether to classify it, and whether to resolve it, ask a
follow-up question or stop asking.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from helper_bot.core.intelligence.context.builder import ContextBuilder
from helper_bot.core.intelligence.intent.catalog import IntentCatalog
from helper_bot.core.intelligence.intent.classifier import ClassificationGateway
from helper_bot.core.intelligence.intent.types import (
    DEFAULT_INTENT_ID,
    ClassificationResult,
    ClassificationStatus,
)
from helper_bot.core.intelligence.session.models import DialogState, MetaKey
from helper_bot.core.intelligence.session.state import DialogPhase, can_transition
from helper_bot.core.intelligence.session.store import (
    ConversationStateStore,
    new_conversation_id,
)
from helper_bot.core.dialog.events import (
    MESSAGE_CREATE,
    MalformedUpdateError,
    MessagePayload,
    UpdateEvent,
)
from helper_bot.core.dialog.response import ResponseComposer
from helper_bot.infra.platform import PlatformClient

logger = logging.getLogger(__name__)


@dataclass
class HandleResult:
    """Outcome of handling one update."""

    success: bool
    handled: bool = False
    intent: Optional[str] = None
    category: Optional[str] = None
    phase: Optional[DialogPhase] = None
    needs_more_data: bool = False
    question_sent: bool = False
    gave_up: bool = False
    reply_message_id: Optional[str] = None

    # Meta keys whose write failed; the step still completed
    write_failures: list[str] = field(default_factory=list)

    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "handled": self.handled,
            "intent": self.intent,
            "category": self.category,
            "phase": self.phase.value if self.phase else None,
            "needs_more_data": self.needs_more_data,
            "question_sent": self.question_sent,
            "gave_up": self.gave_up,
            "reply_message_id": self.reply_message_id,
            "write_failures": self.write_failures,
            "error": self.error,
        }


class SlotFillingOrchestrator:
    """
    Per-dialog state machine: NoCategory -> AwaitingSlotData -> Resolved.

    All collaborators are injected; nothing here is a module-level singleton.
    """

    def __init__(
        self,
        store: ConversationStateStore,
        gateway: ClassificationGateway,
        platform: PlatformClient,
        catalog: IntentCatalog,
        context_builder: ContextBuilder,
        composer: Optional[ResponseComposer] = None,
        bot_user_id: str = "bot_helper",
        auto_handle: bool = False,
        max_questions: int = 5,
    ):
        """Initialize orchestrator.

        Args:
            store: Dialog/message meta accessor
            gateway: Intent classifier
            platform: Platform client used to send replies
            catalog: Intent catalog
            context_builder: Classifier context assembly
            composer: Reply text composer
            bot_user_id: The bot's own user id (its messages are ignored)
            auto_handle: Whether follow-up questions are sent
            max_questions: Question budget per dialog
        """
        self._store = store
        self._gateway = gateway
        self._platform = platform
        self._catalog = catalog
        self._context = context_builder
        self._composer = composer or ResponseComposer()
        self.bot_user_id = bot_user_id
        self.auto_handle = auto_handle
        self.max_questions = max_questions

    async def handle_event(self, event: UpdateEvent) -> HandleResult:
        """
        Handle one update.

        Only ``message.create`` events from users other than the bot are
        processed; everything else is a no-op returning ``handled=False``.

        Raises:
            MalformedUpdateError: If a message.create event lacks its message or dialog id
        """
        if event.event_type != MESSAGE_CREATE:
            logger.debug(f"Event {event.event_type} does not need handling")
            return HandleResult(success=True, handled=False)

        message = event.data.message
        if message is None or not message.dialog_id:
            raise MalformedUpdateError(f"{MESSAGE_CREATE} update without message or dialogId")

        if message.sender_id == self.bot_user_id:
            logger.debug("Message from the bot itself, skipping")
            return HandleResult(success=True, handled=False)

        try:
            return await self.handle_message(message)
        except Exception as e:
            logger.exception(f"Failed to handle message in dialog {message.dialog_id}: {e}")
            return HandleResult(success=False, handled=False, error=str(e))

    async def handle_message(self, message: MessagePayload) -> HandleResult:
        """Run the state machine for one user message."""
        dialog_id = message.dialog_id
        logger.info(
            f"Processing message {message.message_id} in dialog {dialog_id}: "
            f"{message.content[:100]}"
        )

        state = await self._store.get_dialog_state(dialog_id)

        if state.is_categorized:
            logger.info(f"Dialog {dialog_id} already categorized as {state.category}")
            return HandleResult(
                success=True,
                handled=True,
                category=state.category,
                phase=DialogPhase.RESOLVED,
            )

        failures: list[str] = []
        phase = state.phase

        if phase == DialogPhase.AWAITING_SLOT_DATA:
            await self._ensure_conversation_id(state, failures)
            if message.message_id:
                failures.extend(
                    await self._store.mark_session_reply(message.message_id, state.conversation_id)
                )

        context = [
            turn for turn in await self._context.build(state)
            if turn.message_id != message.message_id
        ]

        result = await self._gateway.classify(message.content, context, self._catalog)
        logger.info(
            f"Classification for dialog {dialog_id}: status={result.status.value} "
            f"intent={result.intent}"
        )

        if result.status == ClassificationStatus.SUCCESS:
            outcome = await self._resolve(state, result, result.intent, failures)
        elif result.status == ClassificationStatus.INSUFFICIENT_DATA:
            outcome = await self._ask(state, result, failures)
        else:
            outcome = await self._resolve(state, result, DEFAULT_INTENT_ID, failures)

        if outcome.phase and not can_transition(phase, outcome.phase):
            logger.warning(f"Unexpected transition {phase.value} -> {outcome.phase.value}")

        if failures:
            logger.warning(f"Dialog {dialog_id}: meta writes failed for {failures}")
        return outcome

    async def _resolve(
        self,
        state: DialogState,
        result: ClassificationResult,
        category: str,
        failures: list[str],
    ) -> HandleResult:
        """Commit the category, end any session, then send the reply."""
        dialog_id = state.dialog_id

        if not await self._store.set_category(dialog_id, category):
            failures.append(MetaKey.CATEGORY)
        if category != DEFAULT_INTENT_ID:
            if not await self._store.set_last_intent(dialog_id, category):
                failures.append(MetaKey.LAST_INTENT)
        if state.bot_handling:
            await self._end_session(dialog_id, failures)

        logger.info(f"Category {category} set for dialog {dialog_id}")

        reply = await self._platform.send_message(
            dialog_id, self._composer.compose(result), sender_id=self.bot_user_id
        )

        return HandleResult(
            success=reply.success,
            handled=True,
            intent=result.intent,
            category=category,
            phase=DialogPhase.RESOLVED,
            reply_message_id=reply.message_id,
            write_failures=failures,
            error=reply.error,
        )

    async def _ask(
        self,
        state: DialogState,
        result: ClassificationResult,
        failures: list[str],
    ) -> HandleResult:
        """Ask for missing data, or stop when asking isn't allowed."""
        dialog_id = state.dialog_id

        if not await self._store.set_last_intent(dialog_id, result.intent):
            failures.append(MetaKey.LAST_INTENT)

        stalled = HandleResult(
            success=True,
            handled=True,
            intent=result.intent,
            phase=state.phase,
            needs_more_data=True,
            write_failures=failures,
        )

        if not self.auto_handle:
            logger.info(f"Dialog {dialog_id}: question not sent, auto handling is disabled")
            return stalled

        asked = await self._store.question_turns(dialog_id)
        if len(asked) >= self.max_questions:
            logger.info(
                f"Dialog {dialog_id}: question budget exhausted "
                f"({len(asked)}/{self.max_questions}), leaving it for an operator"
            )
            if state.bot_handling:
                await self._end_session(dialog_id, failures)
            stalled.phase = DialogPhase.NO_CATEGORY
            stalled.gave_up = True
            return stalled

        # Persisted before sending so a redelivered event reuses it
        await self._ensure_conversation_id(state, failures)

        reply = await self._platform.send_message(
            dialog_id, self._composer.compose(result), sender_id=self.bot_user_id
        )
        if not reply.success:
            return HandleResult(
                success=False,
                handled=True,
                intent=result.intent,
                phase=state.phase,
                needs_more_data=True,
                write_failures=failures,
                error=reply.error,
            )

        if reply.message_id:
            failures.extend(
                await self._store.mark_question(reply.message_id, result.intent, state.conversation_id)
            )
        else:
            logger.warning(f"Dialog {dialog_id}: sent question has no message id, cannot tag it")

        if not await self._store.set_bot_handling(dialog_id, True):
            failures.append(MetaKey.BOT_HANDLING)

        logger.info(f"Question sent to dialog {dialog_id} (session {state.conversation_id})")

        return HandleResult(
            success=True,
            handled=True,
            intent=result.intent,
            phase=DialogPhase.AWAITING_SLOT_DATA,
            needs_more_data=True,
            question_sent=True,
            reply_message_id=reply.message_id,
            write_failures=failures,
        )

    async def _ensure_conversation_id(self, state: DialogState, failures: list[str]) -> None:
        if state.conversation_id:
            return
        state.conversation_id = new_conversation_id(state.dialog_id)
        logger.info(f"Dialog {state.dialog_id}: new clarification session {state.conversation_id}")
        if not await self._store.set_conversation_id(state.dialog_id, state.conversation_id):
            failures.append(MetaKey.CONVERSATION_ID)

    async def _end_session(self, dialog_id: str, failures: list[str]) -> None:
        if not await self._store.set_bot_handling(dialog_id, False):
            failures.append(MetaKey.BOT_HANDLING)
        if not await self._store.clear_conversation_id(dialog_id):
            failures.append(MetaKey.CONVERSATION_ID)
