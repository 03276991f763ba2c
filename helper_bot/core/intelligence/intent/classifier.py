"""
LLM-based intent classification against the intent catalog.

The model only proposes a result; every response is validated and
normalized here before the orchestrator sees it.
"""

import json
import logging
import re
import time
from typing import Any, Optional, Sequence

from helper_bot.config import Settings, get_settings
from helper_bot.core.intelligence.session.models import ConversationTurn
from helper_bot.infra.claude import ClaudeClient, is_auth_error
from helper_bot.infra.retry import retry_async
from .catalog import IntentCatalog
from .types import DEFAULT_INTENT_ID, ClassificationResult, ClassificationStatus

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """Ты - ассистент для классификации намерений пользователя. Твоя задача - проанализировать запрос пользователя и определить его намерение из списка доступных намерений.

СПИСОК ДОСТУПНЫХ НАМЕРЕНИЙ:
{intents}

ПРАВИЛА КЛАССИФИКАЦИИ:
1. Сопоставь запрос пользователя с одним из доступных намерений
2. Если намерение определено, извлеки данные согласно структуре намерения
3. Проверь наличие всех обязательных полей (required: true)
4. Верни результат в формате JSON

ФОРМАТ ОТВЕТА:
{{
  "status": "<статус>",
  "intent": "<идентификатор_намерения>",
  "data": {{ ... }}
}}

СТАТУСЫ:
- "success": намерение определено и все обязательные данные присутствуют
- "insufficient_data": намерение определено, но отсутствуют обязательные поля
- "unknown_intent": намерение не может быть определено (используй дефолтное намерение)

ПРАВИЛА:
- Используй только намерения из предоставленного списка
- Если намерение не найдено, используй дефолтное намерение (intent: "{default_intent}")
- Если намерение найдено, но не хватает обязательных полей, верни status: "insufficient_data" и укажи недостающие поля в data.missing_required_fields
- Можешь добавить в data.comment вопрос к пользователю о недостающих данных
- Возвращай только валидный JSON, без дополнительных комментариев
- Если запрос содержит контекст предыдущих реплик, учитывай его при классификации"""

TIMESTAMP_FORMAT = "%d.%m.%Y, %H:%M:%S"


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapping the model output, on any line layout."""
    return _FENCE_RE.sub("", text.strip()).strip()


class ClassificationGateway:
    """
    Classifies utterances into the closed intent catalog.

    Never raises: backend, auth and parse failures all become a synthetic
    ``unknown_intent`` result carrying an ``error`` annotation.
    """

    def __init__(
        self,
        claude_client: ClaudeClient,
        settings: Optional[Settings] = None,
    ):
        """Initialize gateway.

        Args:
            claude_client: LLM client (shared, owned by the bot context)
            settings: Sampling and prompt settings (defaults to cached settings)
        """
        settings = settings or get_settings()
        self._client = claude_client
        self._model = settings.classifier_model
        self._temperature = settings.classifier_temperature
        self._max_tokens = settings.classifier_max_tokens
        self._top_p = settings.classifier_top_p
        self._max_examples = settings.classifier_prompt_max_examples
        self._max_field_examples = settings.classifier_prompt_max_field_examples

    async def classify(
        self,
        utterance: str,
        context: Sequence[ConversationTurn],
        catalog: IntentCatalog,
    ) -> ClassificationResult:
        """
        Classify a user utterance.

        Args:
            utterance: Current user message
            context: Ordered context turns (oldest first)
            catalog: Intent catalog defining the valid outcomes

        Returns:
            Normalized ClassificationResult
        """
        utterance = (utterance or "").strip()
        start_time = time.time()

        if not utterance:
            return ClassificationResult.fallback(error="empty utterance")

        system_prompt = self.build_system_prompt(catalog)
        user_prompt = self.build_user_prompt(utterance, context)

        async def attempt():
            return await self._client.generate(
                prompt=user_prompt,
                system_prompt=system_prompt,
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                top_p=self._top_p,
            )

        try:
            response = await retry_async(
                attempt,
                should_retry=is_auth_error,
                before_retry=self._client.refresh_credentials,
                max_retries=1,
            )
        except Exception as e:
            logger.error(f"Classification failed: {e}")
            return ClassificationResult.fallback(error=str(e))

        result = self.parse_response(response.content, catalog)
        result.processing_time_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Classified intent: {result.intent} status={result.status.value} "
            f"({result.processing_time_ms:.0f}ms)"
        )
        return result

    def build_system_prompt(self, catalog: IntentCatalog) -> str:
        """Render the catalog and the classification rules."""
        intents = json.dumps(
            catalog.for_prompt(self._max_examples, self._max_field_examples),
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return SYSTEM_PROMPT.format(intents=intents, default_intent=DEFAULT_INTENT_ID)

    def build_user_prompt(self, utterance: str, context: Sequence[ConversationTurn]) -> str:
        """Render the utterance with optional dialog context."""
        if not context:
            return f'Запрос пользователя: "{utterance}"'

        lines = format_context_lines(context)
        return (
            "Контекст диалога:\n"
            + "\n".join(lines)
            + f'\n\nТекущий запрос пользователя: "{utterance}"'
        )

    def parse_response(self, response: str, catalog: IntentCatalog) -> ClassificationResult:
        """
        Parse and normalize the model's JSON answer.

        Args:
            response: Raw model text
            catalog: Catalog used to validate intent ids and required fields

        Returns:
            ClassificationResult; unknown_intent on any malformed answer
        """
        text = strip_code_fences(response or "")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse classifier response: {e}\nResponse: {text[:500]}")
            result = ClassificationResult.fallback(error=f"invalid JSON: {e}")
            result.raw_response = text
            return result

        result = self._normalize(payload, catalog)
        result.raw_response = text
        return result

    def _normalize(self, payload: Any, catalog: IntentCatalog) -> ClassificationResult:
        if not isinstance(payload, dict):
            return ClassificationResult.fallback(error="response is not a JSON object")

        status_raw = payload.get("status")
        intent_id = payload.get("intent")
        if not status_raw or not intent_id:
            return ClassificationResult.fallback(error="missing status or intent")

        try:
            status = ClassificationStatus(status_raw)
        except (ValueError, TypeError):
            return ClassificationResult.fallback(error=f"unknown status: {status_raw}")

        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}

        if not isinstance(intent_id, str) or intent_id not in catalog:
            logger.warning(f"Classifier returned intent outside the catalog: {intent_id}")
            return ClassificationResult.fallback(error=f"unknown intent: {intent_id}")

        if status == ClassificationStatus.UNKNOWN_INTENT or intent_id == DEFAULT_INTENT_ID:
            return ClassificationResult(
                status=ClassificationStatus.UNKNOWN_INTENT,
                intent=DEFAULT_INTENT_ID,
                data=data,
            )

        if status == ClassificationStatus.SUCCESS:
            missing = catalog.missing_required(intent_id, data)
            if missing:
                logger.warning(
                    f"Success for {intent_id} lacks required fields {missing}, "
                    f"treating as insufficient_data"
                )
                data = {**data, "missing_required_fields": missing}
                status = ClassificationStatus.INSUFFICIENT_DATA

        if status == ClassificationStatus.INSUFFICIENT_DATA:
            if not isinstance(data.get("missing_required_fields"), list):
                data = {**data, "missing_required_fields": []}

        return ClassificationResult(status=status, intent=intent_id, data=data)


def format_context_lines(context: Sequence[ConversationTurn]) -> list[str]:
    """Format turns as ``- <sender>: "<content>" (<timestamp>)`` lines."""
    lines = []
    for turn in context:
        sender = turn.sender_id or "Пользователь"
        line = f'- {sender}: "{turn.content or ""}"'
        if turn.created_at is not None:
            line += f" ({turn.created_at.strftime(TIMESTAMP_FORMAT)})"
        lines.append(line)
    return lines
