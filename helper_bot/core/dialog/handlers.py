"""Routing of platform updates to their handlers."""

import logging
from typing import Any, Awaitable, Callable, Union

from helper_bot.core.dialog.engine import HandleResult, SlotFillingOrchestrator
from helper_bot.core.dialog.events import (
    MESSAGE_CREATE,
    MESSAGE_REACTION_UPDATE,
    MESSAGE_STATUS_UPDATE,
    MESSAGE_UPDATE,
    MalformedUpdateError,
    UpdateEvent,
)

logger = logging.getLogger(__name__)


MESSAGE_EVENTS = {MESSAGE_CREATE, MESSAGE_UPDATE, MESSAGE_STATUS_UPDATE, MESSAGE_REACTION_UPDATE}
DIALOG_EVENTS = {
    "dialog.create",
    "dialog.update",
    "dialog.delete",
    "dialog.member.add",
    "dialog.member.remove",
}
MEMBER_EVENTS = {"dialog.member.update"}
TYPING_EVENTS = {"dialog.typing"}
USER_EVENTS = {"user.add", "user.update", "user.remove"}
USER_STATS_EVENTS = {"user.stats.update"}


class UpdateDispatcher:
    """
    Dispatches updates by event type.

    Only ``message.create`` reaches the orchestrator; the other families
    are acknowledged and logged.
    """

    def __init__(self, orchestrator: SlotFillingOrchestrator):
        self._orchestrator = orchestrator
        self._routes: list[tuple[set[str], Callable[[UpdateEvent], Awaitable[HandleResult]]]] = [
            (MESSAGE_EVENTS, self._on_message),
            (DIALOG_EVENTS, self._on_dialog),
            (MEMBER_EVENTS, self._on_member),
            (TYPING_EVENTS, self._on_typing),
            (USER_EVENTS, self._on_user),
            (USER_STATS_EVENTS, self._on_user_stats),
        ]

    async def handle_update(self, payload: Union[bytes, str, dict[str, Any]]) -> HandleResult:
        """
        Parse and dispatch one update.

        Raises:
            MalformedUpdateError: If the payload is not a valid update
        """
        event = UpdateEvent.parse(payload)
        logger.debug(f"Processing update of type {event.event_type}")

        for event_types, handler in self._routes:
            if event.event_type in event_types:
                return await handler(event)

        logger.debug(f"Update of type '{event.event_type}' ignored (unknown type)")
        return HandleResult(success=True, handled=False)

    async def _on_message(self, event: UpdateEvent) -> HandleResult:
        message = event.data.message
        if message is None:
            raise MalformedUpdateError(f"{event.event_type} update without message data")

        if event.event_type == MESSAGE_CREATE:
            result = await self._orchestrator.handle_event(event)
            if result.success:
                logger.info(
                    f"Message handled in dialog {message.dialog_id}: handled={result.handled} "
                    f"intent={result.intent} category={result.category}"
                )
            else:
                logger.error(f"Failed to handle message in dialog {message.dialog_id}: {result.error}")
            return result

        if event.event_type == MESSAGE_STATUS_UPDATE:
            status_update = message.status_update or {}
            logger.info(
                f"Message {message.message_id} status updated: "
                f"user={status_update.get('userId')} status={status_update.get('status')}"
            )
        elif event.event_type == MESSAGE_REACTION_UPDATE:
            reaction_update = message.reaction_update or {}
            logger.info(
                f"Message {message.message_id} reaction updated: "
                f"user={reaction_update.get('userId')} reaction={reaction_update.get('reaction')}"
            )
        else:
            logger.info(f"Message {message.message_id} updated")
        return HandleResult(success=True, handled=True)

    async def _on_dialog(self, event: UpdateEvent) -> HandleResult:
        dialog = self._require(event, "dialog")
        member = event.data.member or {}
        if event.event_type.startswith("dialog.member."):
            logger.info(
                f"Dialog {dialog.get('dialogId')} member {event.event_type.rsplit('.', 1)[-1]}: "
                f"{member.get('userId')}"
            )
        else:
            logger.info(f"Dialog {dialog.get('dialogId')}: {event.event_type}")
        return HandleResult(success=True, handled=True)

    async def _on_member(self, event: UpdateEvent) -> HandleResult:
        member = self._require(event, "member")
        logger.info(f"Dialog member updated: {member.get('userId')}")
        return HandleResult(success=True, handled=True)

    async def _on_typing(self, event: UpdateEvent) -> HandleResult:
        typing = self._require(event, "typing")
        logger.debug(f"User {typing.get('userId')} is typing in dialog {typing.get('dialogId')}")
        return HandleResult(success=True, handled=True)

    async def _on_user(self, event: UpdateEvent) -> HandleResult:
        user = self._require(event, "user")
        logger.info(f"User {user.get('userId')}: {event.event_type}")
        return HandleResult(success=True, handled=True)

    async def _on_user_stats(self, event: UpdateEvent) -> HandleResult:
        user = self._require(event, "user")
        logger.debug(f"User stats updated: {user.get('userId')}")
        return HandleResult(success=True, handled=True)

    @staticmethod
    def _require(event: UpdateEvent, part: str) -> dict:
        value = getattr(event.data, part)
        if not value:
            raise MalformedUpdateError(f"{event.event_type} update without {part} data")
        return value
