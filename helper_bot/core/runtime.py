"""
Bot runtime context.

Every long-lived collaborator is built once here and passed explicitly to
whoever needs it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from helper_bot.config import Settings, get_settings
from helper_bot.core.dialog.engine import SlotFillingOrchestrator
from helper_bot.core.dialog.handlers import UpdateDispatcher
from helper_bot.core.dialog.response import ResponseComposer
from helper_bot.core.intelligence.context.builder import ContextBuilder
from helper_bot.core.intelligence.intent.catalog import IntentCatalog, load_default_catalog
from helper_bot.core.intelligence.intent.classifier import ClassificationGateway
from helper_bot.core.intelligence.session.store import ConversationStateStore
from helper_bot.infra.claude import ClaudeClient
from helper_bot.infra.platform import EnsureUserResult, PlatformClient
from helper_bot.infra.rabbitmq import UpdatesConsumer

logger = logging.getLogger(__name__)


@dataclass
class BotContext:
    """Wired collaborators of a running bot."""

    settings: Settings
    catalog: IntentCatalog
    platform: PlatformClient
    claude: ClaudeClient
    store: ConversationStateStore
    gateway: ClassificationGateway
    orchestrator: SlotFillingOrchestrator
    dispatcher: UpdateDispatcher
    consumer: UpdatesConsumer

    async def ensure_bot_user(self) -> EnsureUserResult:
        """Find or create the bot's platform user."""
        return await self.platform.ensure_user(
            self.settings.bot_user_id,
            self.settings.bot_name,
            user_type="bot",
        )

    async def aclose(self) -> None:
        """Stop consuming and close clients."""
        await self.consumer.close()
        await self.platform.close()
        await self.claude.close()


def create_bot_context(
    settings: Optional[Settings] = None,
    catalog: Optional[IntentCatalog] = None,
) -> BotContext:
    """
    Build the bot context from settings.

    Args:
        settings: Settings (defaults to cached settings)
        catalog: Intent catalog (defaults to the shipped catalog)

    Returns:
        BotContext ready to start
    """
    settings = settings or get_settings()
    catalog = catalog or load_default_catalog()

    platform = PlatformClient(
        base_url=settings.platform_api_url,
        api_key=settings.platform_api_key,
        tenant_id=settings.platform_tenant_id,
        timeout=settings.platform_timeout,
    )
    claude = ClaudeClient(settings=settings)
    store = ConversationStateStore(platform, session_history_limit=settings.bot_session_history_limit)
    gateway = ClassificationGateway(claude, settings=settings)
    orchestrator = SlotFillingOrchestrator(
        store=store,
        gateway=gateway,
        platform=platform,
        catalog=catalog,
        context_builder=ContextBuilder(store, max_history_turns=settings.bot_context_limit),
        composer=ResponseComposer(),
        bot_user_id=settings.bot_user_id,
        auto_handle=settings.bot_auto_handle,
        max_questions=settings.bot_max_questions,
    )
    dispatcher = UpdateDispatcher(orchestrator)
    consumer = UpdatesConsumer(dispatcher.handle_update, settings=settings)

    logger.info(
        f"Bot context created: user={settings.bot_user_id} intents={len(catalog)} "
        f"auto_handle={settings.bot_auto_handle} max_questions={settings.bot_max_questions}"
    )

    return BotContext(
        settings=settings,
        catalog=catalog,
        platform=platform,
        claude=claude,
        store=store,
        gateway=gateway,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        consumer=consumer,
    )
