"""Tests for the intent catalog."""

import pytest

from helper_bot.core.intelligence.intent.catalog import (
    CatalogError,
    IntentCatalog,
    load_default_catalog,
)
from helper_bot.core.intelligence.intent.types import (
    DEFAULT_INTENT_ID,
    FieldSpec,
    IntentDefinition,
)


class TestIntentCatalog:
    """Test catalog construction and lookups."""

    @pytest.fixture
    def catalog(self):
        return load_default_catalog()

    def test_default_catalog_has_single_default_intent(self, catalog):
        assert list(catalog.ids).count(DEFAULT_INTENT_ID) == 1
        assert catalog.default.id == DEFAULT_INTENT_ID
        assert catalog.default.fields == ()

    def test_default_catalog_intents(self, catalog):
        assert set(catalog.ids) == {
            "support_technical",
            "support_billing",
            "support_account",
            "support_general",
            DEFAULT_INTENT_ID,
        }

    def test_required_fields(self, catalog):
        assert catalog.get("support_technical").required_fields == ("issue_type", "device")
        assert catalog.get("support_billing").required_fields == ("order_id", "reason")
        assert catalog.get("support_general").required_fields == ()

    def test_get_unknown_returns_none(self, catalog):
        assert catalog.get("support_unknown") is None
        assert catalog.get(None) is None
        assert "support_unknown" not in catalog

    def test_missing_default_intent_fails(self):
        with pytest.raises(CatalogError):
            IntentCatalog([IntentDefinition(id="a", description="A")])

    def test_two_default_intents_fail(self):
        with pytest.raises(CatalogError):
            IntentCatalog([
                IntentDefinition(id=DEFAULT_INTENT_ID, description="x"),
                IntentDefinition(id=DEFAULT_INTENT_ID, description="y"),
            ])

    def test_duplicate_ids_fail(self):
        with pytest.raises(CatalogError):
            IntentCatalog([
                IntentDefinition(id="a", description="A"),
                IntentDefinition(id="a", description="A again"),
                IntentDefinition(id=DEFAULT_INTENT_ID, description="default"),
            ])

    def test_default_intent_with_fields_fails(self):
        with pytest.raises(CatalogError):
            IntentCatalog([
                IntentDefinition(
                    id=DEFAULT_INTENT_ID,
                    description="default",
                    fields=(FieldSpec(name="x", description="x"),),
                ),
            ])


class TestMissingRequired:
    """Test required-field checks."""

    @pytest.fixture
    def catalog(self):
        return load_default_catalog()

    def test_all_present(self, catalog):
        data = {"issue_type": "авторизация", "device": "мобильное приложение"}
        assert catalog.missing_required("support_technical", data) == []

    def test_absent_null_and_blank_are_missing(self, catalog):
        data = {"issue_type": None, "device": "   "}
        assert catalog.missing_required("support_technical", data) == ["issue_type", "device"]

    def test_optional_fields_ignored(self, catalog):
        assert catalog.missing_required("support_general", {}) == []

    def test_unknown_intent_has_no_requirements(self, catalog):
        assert catalog.missing_required("nope", {}) == []


class TestPromptPayload:
    """Test compact prompt representation."""

    def test_examples_trimmed(self):
        payload = load_default_catalog().for_prompt(max_examples=2, max_field_examples=1)
        technical = next(p for p in payload if p["intent"] == "support_technical")

        assert technical["examples"] == ["не работает", "ошибка"]
        assert [f["field"] for f in technical["data"]] == ["issue_type", "device", "error_message"]
        assert all(len(f["examples"]) <= 1 for f in technical["data"])
        assert technical["data"][0]["required"] is True

    def test_default_intent_has_no_data(self):
        payload = load_default_catalog().for_prompt()
        default = next(p for p in payload if p["intent"] == DEFAULT_INTENT_ID)
        assert "data" not in default
        assert "examples" not in default
