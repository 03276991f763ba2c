"""Tests for reply composition."""

import pytest

from helper_bot.core.dialog.response import (
    FALLBACK_TEXT,
    GENERIC_QUESTION,
    ResponseComposer,
    SUCCESS_TEMPLATES,
)
from helper_bot.core.intelligence.intent.types import ClassificationResult, ClassificationStatus


class TestResponseComposer:
    """Test outcome to text mapping."""

    @pytest.fixture
    def composer(self):
        return ResponseComposer()

    def test_missing_fields_listed(self, composer):
        result = ClassificationResult(
            status=ClassificationStatus.INSUFFICIENT_DATA,
            intent="support_technical",
            data={"missing_required_fields": ["device", "issue_type"]},
        )

        text = composer.compose(result)

        assert "device" in text
        assert "issue_type" in text

    def test_comment_preferred(self, composer):
        result = ClassificationResult(
            status=ClassificationStatus.INSUFFICIENT_DATA,
            intent="support_technical",
            data={"missing_required_fields": ["device"], "comment": "На каком устройстве?"},
        )

        assert composer.compose(result) == "На каком устройстве?"

    def test_blank_comment_ignored(self, composer):
        result = ClassificationResult(
            status=ClassificationStatus.INSUFFICIENT_DATA,
            intent="support_technical",
            data={"missing_required_fields": [], "comment": "  "},
        )

        assert composer.compose(result) == GENERIC_QUESTION

    def test_success_template(self, composer):
        result = ClassificationResult(status=ClassificationStatus.SUCCESS, intent="support_account")
        assert composer.compose(result) == SUCCESS_TEMPLATES["support_account"]

    def test_billing_interpolates_order_id(self, composer):
        result = ClassificationResult(
            status=ClassificationStatus.SUCCESS,
            intent="support_billing",
            data={"order_id": "ORD-2024-001", "reason": "возврат"},
        )

        assert "ORD-2024-001" in composer.compose(result)

    def test_unknown_intent_id_uses_default_template(self, composer):
        result = ClassificationResult(status=ClassificationStatus.SUCCESS, intent="something_new")
        assert composer.compose(result) == SUCCESS_TEMPLATES["default_intent"]

    def test_unknown_intent_fallback(self, composer):
        assert composer.compose(ClassificationResult.fallback(error="boom")) == FALLBACK_TEXT

    def test_never_raises_on_odd_data(self, composer):
        result = ClassificationResult(
            status=ClassificationStatus.INSUFFICIENT_DATA,
            intent="support_technical",
            data={"missing_required_fields": [None, 42, "device"]},
        )

        text = composer.compose(result)

        assert "42" in text and "device" in text
