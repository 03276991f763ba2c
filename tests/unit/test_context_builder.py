"""Tests for classifier context assembly."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from helper_bot.core.intelligence.context.builder import ContextBuilder, merge_turns
from helper_bot.core.intelligence.session.models import ConversationTurn, DialogState

BASE = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def turn(message_id: str, minute, content: str = "") -> ConversationTurn:
    created = BASE + timedelta(minutes=minute) if minute is not None else None
    return ConversationTurn(message_id=message_id, content=content, created_at=created)


class TestMergeTurns:
    """Test dedupe and ordering of overlapping turn sets."""

    def test_overlapping_sets_are_unique_and_sorted(self):
        questions = [turn("q2", 3), turn("q1", 1), turn("r1", 2)]
        replies = [turn("r2", 4), turn("r1", 2), turn("q2", 3)]

        merged = merge_turns(questions, replies)

        ids = [t.message_id for t in merged]
        assert ids == ["q1", "r1", "q2", "r2"]
        assert len(ids) == len(set(ids))

    def test_turns_without_id_are_not_collapsed(self):
        first = ConversationTurn.from_platform({"content": "первое", "createdAt": "2025-01-01T12:01:00Z"})
        second = ConversationTurn.from_platform({"content": "второе", "createdAt": "2025-01-01T12:02:00Z"})

        merged = merge_turns([first, turn("q1", 0)], [second, turn("q1", 0)])

        assert [t.content for t in merged] == ["", "первое", "второе"]
        assert [t.message_id for t in merged] == ["q1", "", ""]

    def test_missing_timestamps_sort_first(self):
        merged = merge_turns([turn("a", 5), turn("b", None)])
        assert [t.message_id for t in merged] == ["b", "a"]

    def test_empty(self):
        assert merge_turns([], []) == []


class TestContextBuilder:
    """Test phase-dependent context selection."""

    @pytest.fixture
    def store(self):
        return AsyncMock()

    @pytest.fixture
    def builder(self, store):
        return ContextBuilder(store, max_history_turns=3)

    @pytest.mark.asyncio
    async def test_session_context_when_bot_handling(self, builder, store):
        store.session_turns.return_value = ([turn("q1", 1), turn("r1", 2)], [turn("r1", 2), turn("r2", 4)])
        state = DialogState(dialog_id="dlg_1", bot_handling=True, conversation_id="conv_x")

        context = await builder.build(state)

        assert [t.message_id for t in context] == ["q1", "r1", "r2"]
        store.session_turns.assert_awaited_once_with("dlg_1", "conv_x")
        store.recent_turns.assert_not_called()

    @pytest.mark.asyncio
    async def test_recent_history_oldest_first(self, builder, store):
        store.recent_turns.return_value = [turn("m3", 3), turn("m2", 2), turn("m1", 1)]
        state = DialogState(dialog_id="dlg_1")

        context = await builder.build(state)

        assert [t.message_id for t in context] == ["m1", "m2", "m3"]
        store.recent_turns.assert_awaited_once_with("dlg_1", 3)
        store.session_turns.assert_not_called()
