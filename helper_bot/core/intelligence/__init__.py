"""
Intelligence Layer Module

Provides the intent catalog, LLM classification, dialog state storage
and classifier context building for the helper bot.

Usage:
    from helper_bot.core.intelligence import (
        ClassificationGateway,
        ConversationStateStore,
        ContextBuilder,
        load_default_catalog,
    )

    catalog = load_default_catalog()
    state = await store.get_dialog_state("dlg_1")
    context = await ContextBuilder(store).build(state)
    result = await gateway.classify("У меня не работает", context, catalog)
    print(result.status)  # ClassificationStatus.INSUFFICIENT_DATA
"""

# Dialog state
from helper_bot.core.intelligence.session.state import (
    DialogPhase,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
)
from helper_bot.core.intelligence.session.models import (
    ConversationTurn,
    DialogState,
    MessageTags,
    MetaKey,
)
from helper_bot.core.intelligence.session.store import (
    ConversationStateStore,
    MetaScope,
    new_conversation_id,
)

# Intent
from helper_bot.core.intelligence.intent.types import (
    DEFAULT_INTENT_ID,
    ClassificationResult,
    ClassificationStatus,
    FieldSpec,
    IntentDefinition,
)
from helper_bot.core.intelligence.intent.catalog import IntentCatalog, load_default_catalog
from helper_bot.core.intelligence.intent.classifier import ClassificationGateway

# Context Building
from helper_bot.core.intelligence.context.builder import ContextBuilder, merge_turns

__all__ = [
    # Session State
    "DialogPhase",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    # Session Data
    "ConversationTurn",
    "DialogState",
    "MessageTags",
    "MetaKey",
    "ConversationStateStore",
    "MetaScope",
    "new_conversation_id",
    # Intent
    "DEFAULT_INTENT_ID",
    "ClassificationResult",
    "ClassificationStatus",
    "FieldSpec",
    "IntentDefinition",
    "IntentCatalog",
    "load_default_catalog",
    "ClassificationGateway",
    # Context
    "ContextBuilder",
    "merge_turns",
]
