"""
Reply texts for classification outcomes.

Pure templates, no LLM call: replies must be produced even when the
classifier is down.
"""

import logging

from helper_bot.core.intelligence.intent.types import (
    DEFAULT_INTENT_ID,
    ClassificationResult,
    ClassificationStatus,
)

logger = logging.getLogger(__name__)


SUCCESS_TEMPLATES: dict[str, str] = {
    "support_technical": "Понял, проблема с технической поддержкой. Сейчас разберусь.",
    "support_billing": "Понял, вопрос по оплате. Обрабатываю ваш запрос.",
    "support_account": "Понял, вопрос по аккаунту. Помогу вам.",
    "support_general": "Понял ваш вопрос. Сейчас помогу.",
    DEFAULT_INTENT_ID: "Понял ваш запрос. Обрабатываю.",
}

BILLING_ORDER_TEMPLATE = "Оформляю возврат по заказу {order_id}."

FALLBACK_TEXT = "Извините, я не понял ваш запрос. Пожалуйста, уточните, чем я могу помочь."

MISSING_FIELDS_TEMPLATE = (
    "Для обработки вашего запроса мне нужна дополнительная информация: {fields}. "
    "Пожалуйста, предоставьте эти данные."
)

GENERIC_QUESTION = "Мне нужна дополнительная информация. Пожалуйста, уточните ваш запрос."


class ResponseComposer:
    """Maps a ClassificationResult to user-facing text. Never raises."""

    def compose(self, result: ClassificationResult) -> str:
        try:
            if result.status == ClassificationStatus.SUCCESS:
                return self.success_text(result)
            if result.status == ClassificationStatus.INSUFFICIENT_DATA:
                return self.question_text(result)
        except Exception as e:
            logger.error(f"Failed to compose reply for {result.intent}: {e}")
        return FALLBACK_TEXT

    def success_text(self, result: ClassificationResult) -> str:
        """Confirmation for a resolved intent."""
        if result.intent == "support_billing" and result.data.get("order_id"):
            return BILLING_ORDER_TEMPLATE.format(order_id=result.data["order_id"])
        return SUCCESS_TEMPLATES.get(result.intent, SUCCESS_TEMPLATES[DEFAULT_INTENT_ID])

    def question_text(self, result: ClassificationResult) -> str:
        """Follow-up question asking for missing data."""
        if result.comment:
            return result.comment

        missing = [str(name) for name in result.missing_required_fields if name]
        if not missing:
            return GENERIC_QUESTION
        return MISSING_FIELDS_TEMPLATE.format(fields=", ".join(missing))
