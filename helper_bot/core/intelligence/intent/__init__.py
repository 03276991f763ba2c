"""Intent classification module."""

from .types import (
    DEFAULT_INTENT_ID,
    ClassificationResult,
    ClassificationStatus,
    FieldSpec,
    IntentDefinition,
)
from .catalog import CatalogError, IntentCatalog, DEFAULT_INTENTS, load_default_catalog
from .classifier import ClassificationGateway, format_context_lines, strip_code_fences

__all__ = [
    # Types
    "DEFAULT_INTENT_ID",
    "ClassificationResult",
    "ClassificationStatus",
    "FieldSpec",
    "IntentDefinition",
    # Catalog
    "CatalogError",
    "IntentCatalog",
    "DEFAULT_INTENTS",
    "load_default_catalog",
    # Classifier
    "ClassificationGateway",
    "format_context_lines",
    "strip_code_fences",
]
