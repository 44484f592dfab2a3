from __future__ import annotations

"""
Provider abstraction for expense category suggestions.

This module defines the request/response schema that the deterministic
classifier, the fixture-backed mock, and the LLM-backed implementation all
satisfy, plus the validation applied to whatever label a provider returns
before it can become an entry's category.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from shared.observability.privacy import redact_fields, text_fingerprint

from categorize import classify_category
from entry_model import AdHocCategory, Category
from localization import category_display, known_category_for_label, other_label

logger = logging.getLogger(__name__)

SAFE_CONTEXT_KEYS = frozenset({"locale", "surface", "form"})
MAX_CATEGORY_WORDS = 3
MAX_CATEGORY_LENGTH = 40
_QUOTE_CHARS = "\"'`“”‘’"


@dataclass(slots=True)
class CategorySuggestionRequest:
    """
    Contract for category suggestion inputs.

    Attributes:
        description: Parsed description of the expense (never the raw input).
        language: Two-letter code; new categories must be coined in it.
        existing_categories: Labels the provider should prefer when one fits.
        context: Optional metadata (surface, form, etc.). Providers must
            ignore keys they do not use.
    """

    description: str
    language: str
    existing_categories: List[str] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CategorySuggestionResponse:
    """
    Contract for category suggestion outputs.

    Attributes:
        category: The raw suggested label; the pipeline validates it.
    """

    category: str


@runtime_checkable
class CategorySuggestionProvider(Protocol):
    """
    Interface for swappable category suggesters.

    Implementations expose a descriptive `name` and an async `suggest` method.
    `suggest` may raise; callers treat any failure as a reason to fall back to
    the deterministic classifier.
    """

    name: str

    async def suggest(self, request: CategorySuggestionRequest) -> CategorySuggestionResponse:
        """Suggest a category label for the described expense."""
        ...


class DeterministicCategoryProvider:
    """
    Default provider that delegates to the keyword classifier.

    Lets the service run with the suggestion step enabled but no external
    dependency; it never coins new categories.
    """

    name = "deterministic"

    async def suggest(self, request: CategorySuggestionRequest) -> CategorySuggestionResponse:
        category = classify_category(request.description)
        response = CategorySuggestionResponse(category=category_display(category, request.language))
        _log_category_metrics(self.name, request, response)
        return response


class MockCategoryProvider:
    """
    Fixture-driven provider suitable for tests or offline demos.

    The fixture maps lowercased descriptions to labels; unknown descriptions
    get the fixture's `default` or, when absent, the localized Other label.
    """

    name = "mock"

    def __init__(self, fixture_path: str | Path | None = None):
        env_override = os.getenv("CATEGORY_PROVIDER_FIXTURE")
        candidate = fixture_path or env_override
        if candidate is None:
            candidate = _default_fixture_path()

        self._fixture_path = Path(candidate)
        if not self._fixture_path.exists():
            raise FileNotFoundError(f"Mock category provider fixture not found at {self._fixture_path}")

    async def suggest(self, request: CategorySuggestionRequest) -> CategorySuggestionResponse:
        payload = self._load_fixture()
        suggestions = {str(key).casefold(): str(value) for key, value in payload.get("suggestions", {}).items()}
        label = suggestions.get(request.description.strip().casefold())
        if label is None:
            label = payload.get("default") or other_label(request.language)
        response = CategorySuggestionResponse(category=label)
        _log_category_metrics(self.name, request, response)
        return response

    def _load_fixture(self) -> Dict[str, Any]:
        try:
            return json.loads(self._fixture_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Mock category provider fixture is not valid JSON: {self._fixture_path}") from exc


def _default_fixture_path() -> Path:
    service_root = Path(__file__).resolve().parents[1]
    return service_root / "tests" / "fixtures" / "mock_category_provider.json"


def build_category_provider(
    name: str | None,
    *,
    settings: Optional[Any] = None,
) -> CategorySuggestionProvider:
    """
    Factory that instantiates the requested category provider implementation.
    """

    normalized = (name or "").strip().lower()
    if normalized in ("", "deterministic"):
        return DeterministicCategoryProvider()
    if normalized == "mock":
        return MockCategoryProvider()
    if normalized == "openai":
        from providers.openai_category import OpenAICategoryProvider

        return OpenAICategoryProvider(settings=settings)

    raise ValueError(f"Unsupported category provider '{name}'")


def normalize_suggested_label(raw_label: Any) -> Optional[str]:
    """
    Clean a provider label, returning None when it is unusable.

    Surrounding quotes, trailing punctuation, and repeated whitespace are
    dropped. Empty labels and labels longer than a short phrase are rejected.
    """

    if not isinstance(raw_label, str):
        return None
    label = re.sub(r"\s+", " ", raw_label).strip(_QUOTE_CHARS + ".! ")
    if not label:
        return None
    if len(label) > MAX_CATEGORY_LENGTH or len(label.split(" ")) > MAX_CATEGORY_WORDS:
        return None
    return label


def resolve_suggested_category(label: str, existing_categories: Sequence[str]) -> Category:
    """
    Map a validated label onto the category union.

    Canonical labels in any language become KnownCategory; a case-insensitive
    hit on a caller-supplied category reuses that spelling; anything else is
    a new AdHocCategory.
    """

    known = known_category_for_label(label)
    if known is not None:
        return known

    folded = label.casefold()
    for existing in existing_categories:
        if existing.strip().casefold() == folded:
            return AdHocCategory(existing.strip())
    return AdHocCategory(label)


def _log_category_metrics(
    provider_name: str,
    request: CategorySuggestionRequest,
    response: CategorySuggestionResponse,
) -> None:
    logger.info(
        {
            "event": "category_provider_output",
            "provider": provider_name,
            "language": request.language,
            "description": text_fingerprint(request.description),
            "existing_category_count": len(request.existing_categories),
            "suggested_category": response.category,
            "context_snapshot": _safe_context_snapshot(request.context),
        }
    )


def _safe_context_snapshot(context: Dict[str, Any]) -> Dict[str, Any]:
    if not context:
        return {}
    return redact_fields(context, SAFE_CONTEXT_KEYS)
