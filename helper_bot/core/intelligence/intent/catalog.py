"""
Intent catalog.

The closed set of intents the classifier may return. Loaded once at
startup and never mutated.
"""

from typing import Any, Iterable, Mapping, Optional

from .types import DEFAULT_INTENT_ID, FieldSpec, IntentDefinition


class CatalogError(ValueError):
    """Raised when a catalog violates its invariants."""
    pass


class IntentCatalog:
    """Immutable registry of intent definitions."""

    def __init__(self, intents: Iterable[IntentDefinition]):
        """Build the catalog.

        Args:
            intents: Intent definitions; exactly one must be ``default_intent``

        Raises:
            CatalogError: On duplicate ids or a missing/duplicated default intent
        """
        self._intents: tuple[IntentDefinition, ...] = tuple(intents)
        self._by_id: dict[str, IntentDefinition] = {}

        for intent in self._intents:
            if intent.id in self._by_id:
                raise CatalogError(f"Duplicate intent id: {intent.id}")
            self._by_id[intent.id] = intent

        defaults = [i for i in self._intents if i.id == DEFAULT_INTENT_ID]
        if len(defaults) != 1:
            raise CatalogError(
                f"Catalog must contain exactly one '{DEFAULT_INTENT_ID}', found {len(defaults)}"
            )
        if defaults[0].fields:
            raise CatalogError(f"'{DEFAULT_INTENT_ID}' must not declare data fields")

    def __iter__(self):
        return iter(self._intents)

    def __len__(self) -> int:
        return len(self._intents)

    def __contains__(self, intent_id: object) -> bool:
        return intent_id in self._by_id

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(i.id for i in self._intents)

    @property
    def default(self) -> IntentDefinition:
        return self._by_id[DEFAULT_INTENT_ID]

    def get(self, intent_id: Optional[str]) -> Optional[IntentDefinition]:
        """Get intent by id, or None if it isn't in the catalog."""
        if intent_id is None:
            return None
        return self._by_id.get(intent_id)

    def missing_required(self, intent_id: str, data: Mapping[str, Any]) -> list[str]:
        """Required fields of ``intent_id`` that are absent, null or blank in ``data``."""
        intent = self.get(intent_id)
        if intent is None:
            return []

        missing = []
        for name in intent.required_fields:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def for_prompt(self, max_examples: int = 2, max_field_examples: int = 2) -> list[dict]:
        """Compact representation sent to the classifier.

        Trims example lists so the prompt stays small.
        """
        payload = []
        for intent in self._intents:
            entry: dict[str, Any] = {
                "intent": intent.id,
                "description": intent.description,
            }
            if intent.examples:
                entry["examples"] = list(intent.examples[:max_examples])
            if intent.fields:
                fields = []
                for field_spec in intent.fields:
                    item: dict[str, Any] = {
                        "field": field_spec.name,
                        "description": field_spec.description,
                        "required": field_spec.required,
                    }
                    if field_spec.examples:
                        item["examples"] = list(field_spec.examples[:max_field_examples])
                    fields.append(item)
                entry["data"] = fields
            payload.append(entry)
        return payload


DEFAULT_INTENTS: tuple[IntentDefinition, ...] = (
    IntentDefinition(
        id="support_technical",
        description="Техническая поддержка - проблемы с работой системы, ошибки, неполадки",
        examples=(
            "не работает",
            "ошибка",
            "не могу войти",
            "система зависла",
            "не открывается",
            "баг",
            "сломалось",
        ),
        fields=(
            FieldSpec(
                name="issue_type",
                description="Тип проблемы (авторизация, производительность, функциональность, другое)",
                required=True,
                examples=("авторизация", "производительность", "функциональность", "другое"),
            ),
            FieldSpec(
                name="device",
                description="Устройство или платформа (обязательно)",
                required=True,
                examples=("мобильное приложение", "веб-сайт", "API"),
            ),
            FieldSpec(
                name="error_message",
                description="Текст ошибки, если есть (опционально)",
                required=False,
                examples=("Ошибка 404", "Connection timeout"),
            ),
        ),
    ),
    IntentDefinition(
        id="support_billing",
        description="Вопросы по оплате, счетам, возвратам, подпискам",
        examples=("оплата", "счет", "возврат", "подписка", "платеж", "деньги", "биллинг"),
        fields=(
            FieldSpec(
                name="order_id",
                description="Номер заказа или транзакции",
                required=True,
                examples=("12345", "ORD-2024-001"),
            ),
            FieldSpec(
                name="reason",
                description="Причина обращения (возврат, вопрос по счету, отмена подписки)",
                required=True,
                examples=("возврат", "вопрос по счету", "отмена подписки", "другое"),
            ),
            FieldSpec(
                name="amount",
                description="Сумма (опционально)",
                required=False,
                examples=("1000", "5000 руб"),
            ),
        ),
    ),
    IntentDefinition(
        id="support_account",
        description="Вопросы по аккаунту, настройкам профиля, доступу",
        examples=("аккаунт", "профиль", "настройки", "пароль", "доступ", "регистрация"),
        fields=(
            FieldSpec(
                name="action_type",
                description="Тип действия (изменение пароля, восстановление доступа, изменение данных)",
                required=True,
                examples=("изменение пароля", "восстановление доступа", "изменение данных", "другое"),
            ),
            FieldSpec(
                name="user_id",
                description="ID пользователя (опционально)",
                required=False,
                examples=("user123", "user@example.com"),
            ),
        ),
    ),
    IntentDefinition(
        id="support_general",
        description="Общие вопросы, информация о продукте, документация",
        examples=("как использовать", "документация", "инструкция", "помощь", "вопрос", "информация"),
        fields=(
            FieldSpec(
                name="topic",
                description="Тема вопроса",
                required=False,
                examples=("функциональность", "интеграция", "API", "другое"),
            ),
        ),
    ),
    IntentDefinition(
        id=DEFAULT_INTENT_ID,
        description="Намерение не определено или не соответствует ни одному из доступных намерений",
    ),
)


def load_default_catalog() -> IntentCatalog:
    """Build the catalog shipped with the bot."""
    return IntentCatalog(DEFAULT_INTENTS)
