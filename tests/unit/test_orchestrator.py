"""Tests for the slot-filling orchestrator."""

from unittest.mock import AsyncMock, call

import pytest

from helper_bot.core.dialog.engine import SlotFillingOrchestrator
from helper_bot.core.dialog.events import MalformedUpdateError, UpdateEvent
from helper_bot.core.dialog.response import FALLBACK_TEXT
from helper_bot.core.intelligence.intent.catalog import load_default_catalog
from helper_bot.core.intelligence.intent.types import ClassificationResult, ClassificationStatus
from helper_bot.core.intelligence.session.models import ConversationTurn, DialogState
from helper_bot.core.intelligence.session.state import DialogPhase
from helper_bot.infra.platform import SendResult

BOT_ID = "bot_helper"


def make_event(content="У меня не работает", sender="user_1", event_type="message.create", **message):
    return UpdateEvent.parse({
        "eventType": event_type,
        "data": {
            "message": {
                "messageId": "msg_user",
                "dialogId": "dlg_1",
                "senderId": sender,
                "content": content,
                "type": "internal.text",
                **message,
            }
        },
    })


def insufficient(intent="support_technical", missing=("device", "issue_type")):
    return ClassificationResult(
        status=ClassificationStatus.INSUFFICIENT_DATA,
        intent=intent,
        data={"missing_required_fields": list(missing)},
    )


def success(intent="support_technical"):
    return ClassificationResult(
        status=ClassificationStatus.SUCCESS,
        intent=intent,
        data={"device": "мобильное приложение", "issue_type": "авторизация"},
    )


class TestSlotFillingOrchestrator:
    """Test the per-dialog state machine."""

    @pytest.fixture
    def store(self):
        store = AsyncMock()
        store.get_dialog_state.return_value = DialogState(dialog_id="dlg_1")
        for name in (
            "set_category",
            "set_last_intent",
            "set_bot_handling",
            "set_conversation_id",
            "clear_conversation_id",
        ):
            getattr(store, name).return_value = True
        store.mark_question.return_value = []
        store.mark_session_reply.return_value = []
        store.question_turns.return_value = []
        return store

    @pytest.fixture
    def gateway(self):
        return AsyncMock()

    @pytest.fixture
    def platform(self):
        platform = AsyncMock()
        platform.send_message.return_value = SendResult(success=True, message_id="msg_bot")
        return platform

    @pytest.fixture
    def context_builder(self):
        builder = AsyncMock()
        builder.build.return_value = []
        return builder

    @pytest.fixture
    def orchestrator(self, store, gateway, platform, context_builder):
        return SlotFillingOrchestrator(
            store=store,
            gateway=gateway,
            platform=platform,
            catalog=load_default_catalog(),
            context_builder=context_builder,
            bot_user_id=BOT_ID,
            auto_handle=True,
            max_questions=5,
        )

    # === Ignored events ===

    @pytest.mark.asyncio
    async def test_ignores_bot_messages(self, orchestrator, store, gateway):
        result = await orchestrator.handle_event(make_event(sender=BOT_ID))

        assert result.success is True
        assert result.handled is False
        store.get_dialog_state.assert_not_called()
        gateway.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_ignores_non_create_events(self, orchestrator, gateway):
        result = await orchestrator.handle_event(make_event(event_type="message.update"))

        assert result.success is True
        assert result.handled is False
        gateway.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_without_dialog_is_malformed(self, orchestrator):
        with pytest.raises(MalformedUpdateError):
            await orchestrator.handle_event(make_event(dialogId=None))

    # === Resolved short-circuit ===

    @pytest.mark.asyncio
    async def test_categorized_dialog_not_reclassified(self, orchestrator, store, gateway, platform):
        store.get_dialog_state.return_value = DialogState(dialog_id="dlg_1", category="support_billing")

        for _ in range(3):
            result = await orchestrator.handle_event(make_event())
            assert result.handled is True
            assert result.category == "support_billing"
            assert result.phase == DialogPhase.RESOLVED

        gateway.classify.assert_not_called()
        platform.send_message.assert_not_called()

    # === Success ===

    @pytest.mark.asyncio
    async def test_success_sets_category_and_replies(self, orchestrator, store, gateway, platform):
        gateway.classify.return_value = success()

        result = await orchestrator.handle_event(make_event("Не работает мобильное приложение"))

        assert result.success is True
        assert result.category == "support_technical"
        assert result.phase == DialogPhase.RESOLVED
        store.set_category.assert_awaited_once_with("dlg_1", "support_technical")
        store.set_last_intent.assert_awaited_once_with("dlg_1", "support_technical")
        store.set_bot_handling.assert_not_called()
        platform.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_success_in_session_ends_session(self, orchestrator, store, gateway):
        store.get_dialog_state.return_value = DialogState(
            dialog_id="dlg_1", bot_handling=True, conversation_id="conv_x", last_intent="support_technical"
        )
        gateway.classify.return_value = success()

        result = await orchestrator.handle_event(make_event("в мобильном приложении, авторизация"))

        assert result.phase == DialogPhase.RESOLVED
        store.mark_session_reply.assert_awaited_once_with("msg_user", "conv_x")
        store.set_bot_handling.assert_awaited_once_with("dlg_1", False)
        store.clear_conversation_id.assert_awaited_once_with("dlg_1")

    @pytest.mark.asyncio
    async def test_metadata_written_before_send(self, orchestrator, store, gateway, platform):
        order = []
        store.set_category.side_effect = lambda *a: order.append("category") or True
        platform.send_message.side_effect = lambda *a, **kw: order.append("send") or SendResult(success=True)
        gateway.classify.return_value = success()

        await orchestrator.handle_event(make_event())

        assert order == ["category", "send"]

    # === Unknown intent ===

    @pytest.mark.asyncio
    async def test_unknown_sets_default_category(self, orchestrator, store, gateway, platform):
        gateway.classify.return_value = ClassificationResult.fallback(error="backend down")

        result = await orchestrator.handle_event(make_event("ммм"))

        assert result.category == "default_intent"
        assert result.phase == DialogPhase.RESOLVED
        store.set_category.assert_awaited_once_with("dlg_1", "default_intent")
        store.set_last_intent.assert_not_called()
        assert platform.send_message.await_args.args[1] == FALLBACK_TEXT

    # === Insufficient data ===

    @pytest.mark.asyncio
    async def test_question_asked_and_tagged(self, orchestrator, store, gateway, platform):
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event())

        assert result.success is True
        assert result.question_sent is True
        assert result.needs_more_data is True
        assert result.phase == DialogPhase.AWAITING_SLOT_DATA
        store.set_category.assert_not_called()
        store.set_last_intent.assert_awaited_once_with("dlg_1", "support_technical")

        conversation_id = store.set_conversation_id.await_args.args[1]
        assert conversation_id.startswith("conv_dlg_1_")
        store.mark_question.assert_awaited_once_with("msg_bot", "support_technical", conversation_id)
        store.set_bot_handling.assert_awaited_once_with("dlg_1", True)

        question = platform.send_message.await_args.args[1]
        assert "device" in question and "issue_type" in question

    @pytest.mark.asyncio
    async def test_conversation_id_persisted_before_send(self, orchestrator, store, gateway, platform):
        order = []
        store.set_conversation_id.side_effect = lambda *a: order.append("conversation_id") or True
        platform.send_message.side_effect = lambda *a, **kw: order.append("send") or SendResult(
            success=True, message_id="msg_bot"
        )
        store.set_bot_handling.side_effect = lambda *a: order.append("bot_handling") or True
        gateway.classify.return_value = insufficient()

        await orchestrator.handle_event(make_event())

        assert order == ["conversation_id", "send", "bot_handling"]

    @pytest.mark.asyncio
    async def test_existing_session_id_reused(self, orchestrator, store, gateway):
        store.get_dialog_state.return_value = DialogState(
            dialog_id="dlg_1", bot_handling=True, conversation_id="conv_x"
        )
        gateway.classify.return_value = insufficient(missing=("issue_type",))

        result = await orchestrator.handle_event(make_event("в приложении"))

        assert result.question_sent is True
        store.set_conversation_id.assert_not_called()
        store.mark_question.assert_awaited_once_with("msg_bot", "support_technical", "conv_x")

    @pytest.mark.asyncio
    async def test_session_without_id_gets_one(self, orchestrator, store, gateway):
        store.get_dialog_state.return_value = DialogState(dialog_id="dlg_1", bot_handling=True)
        gateway.classify.return_value = insufficient()

        await orchestrator.handle_event(make_event())

        conversation_id = store.set_conversation_id.await_args.args[1]
        store.mark_session_reply.assert_awaited_once_with("msg_user", conversation_id)
        assert store.set_conversation_id.await_count == 1

    @pytest.mark.asyncio
    async def test_current_message_excluded_from_context(self, orchestrator, gateway, context_builder):
        context_builder.build.return_value = [
            ConversationTurn(message_id="msg_old", content="раньше"),
            ConversationTurn(message_id="msg_user", content="У меня не работает"),
        ]
        gateway.classify.return_value = insufficient()

        await orchestrator.handle_event(make_event())

        context = gateway.classify.await_args.args[1]
        assert [t.message_id for t in context] == ["msg_old"]

    @pytest.mark.asyncio
    async def test_auto_handle_disabled_stalls(self, orchestrator, store, gateway, platform):
        orchestrator.auto_handle = False
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event())

        assert result.success is True
        assert result.needs_more_data is True
        assert result.question_sent is False
        store.set_last_intent.assert_awaited_once_with("dlg_1", "support_technical")
        store.set_bot_handling.assert_not_called()
        store.set_category.assert_not_called()
        platform.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_question_budget_exhausted(self, orchestrator, store, gateway, platform):
        store.get_dialog_state.return_value = DialogState(
            dialog_id="dlg_1", bot_handling=True, conversation_id="conv_x"
        )
        store.question_turns.return_value = [
            ConversationTurn(message_id=f"q{i}") for i in range(5)
        ]
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event("не знаю"))

        assert result.success is True
        assert result.gave_up is True
        assert result.question_sent is False
        platform.send_message.assert_not_called()
        store.mark_question.assert_not_called()
        store.set_category.assert_not_called()
        store.set_bot_handling.assert_awaited_once_with("dlg_1", False)
        store.clear_conversation_id.assert_awaited_once_with("dlg_1")

    @pytest.mark.asyncio
    async def test_budget_allows_last_question(self, orchestrator, store, gateway, platform):
        store.question_turns.return_value = [ConversationTurn(message_id=f"q{i}") for i in range(4)]
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event())

        assert result.question_sent is True
        platform.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_failure_reports_failure(self, orchestrator, store, gateway, platform):
        platform.send_message.return_value = SendResult(success=False, error="HTTP 502", status_code=502)
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event())

        assert result.success is False
        assert result.error == "HTTP 502"
        store.set_conversation_id.assert_awaited_once()
        store.mark_question.assert_not_called()
        store.set_bot_handling.assert_not_called()

    # === Failures ===

    @pytest.mark.asyncio
    async def test_write_failures_collected(self, orchestrator, store, gateway, platform):
        store.set_category.return_value = False
        gateway.classify.return_value = success()

        result = await orchestrator.handle_event(make_event())

        assert result.success is True
        assert result.write_failures == ["category"]
        platform.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tagging_failures_collected(self, orchestrator, store, gateway):
        store.mark_question.return_value = ["relatedIntent"]
        gateway.classify.return_value = insufficient()

        result = await orchestrator.handle_event(make_event())

        assert result.question_sent is True
        assert result.write_failures == ["relatedIntent"]

    @pytest.mark.asyncio
    async def test_unexpected_error_reported(self, orchestrator, gateway):
        gateway.classify.side_effect = RuntimeError("kaboom")

        result = await orchestrator.handle_event(make_event())

        assert result.success is False
        assert "kaboom" in result.error

    @pytest.mark.asyncio
    async def test_reply_sent_as_bot(self, orchestrator, gateway, platform):
        gateway.classify.return_value = success()

        await orchestrator.handle_event(make_event())

        assert platform.send_message.await_args == call(
            "dlg_1", platform.send_message.await_args.args[1], sender_id=BOT_ID
        )
