"""
Dialog Module

Update parsing, reply composition and the slot-filling orchestrator.

Usage:
    from helper_bot.core.dialog import UpdateDispatcher

    dispatcher = UpdateDispatcher(orchestrator)
    result = await dispatcher.handle_update(body)
    print(result.handled, result.category)
"""

from helper_bot.core.dialog.events import (
    MESSAGE_CREATE,
    MalformedUpdateError,
    MessagePayload,
    UpdateData,
    UpdateEvent,
)
from helper_bot.core.dialog.response import ResponseComposer
from helper_bot.core.dialog.engine import HandleResult, SlotFillingOrchestrator
from helper_bot.core.dialog.handlers import UpdateDispatcher

__all__ = [
    # Events
    "MESSAGE_CREATE",
    "MalformedUpdateError",
    "MessagePayload",
    "UpdateData",
    "UpdateEvent",
    # Replies
    "ResponseComposer",
    # Orchestrator
    "HandleResult",
    "SlotFillingOrchestrator",
    "UpdateDispatcher",
]
