"""
OpenAI-powered category suggestion provider.

Implements the CategorySuggestionProvider protocol with a chat completion that
is forced to call a single function, so the model's answer always arrives as a
structured `{"suggested_category": ...}` payload. Failures are raised as
CategorySuggestionError; the entry pipeline owns the fallback to the
deterministic classifier and the user notification.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from openai import APIError, APITimeoutError, AsyncOpenAI
from shared.observability.privacy import hash_payload, text_fingerprint

from category_provider import CategorySuggestionRequest, CategorySuggestionResponse
from entry_model import CategorySuggestionError
from localization import other_label

logger = logging.getLogger(__name__)

FUNCTION_NAME = "suggest_expense_category"

CATEGORY_SCHEMA = {
    "type": "object",
    "properties": {
        "suggested_category": {
            "type": "string",
            "description": (
                "The suggested category name. Either one of the existing categories or, "
                "if appropriate, a new concise category (1-2 words)."
            ),
        },
    },
    "required": ["suggested_category"],
}

SYSTEM_PROMPT = """You are an assistant that categorizes personal expenses.
Given an expense description and a list of existing categories, suggest the most appropriate category.
Be accurate and concise.

Rules:
1. Strongly prefer one of the existing categories when the description clearly fits.
   For example "Nasi Goreng" fits "Makanan"; "Bensin Mobil" fits "Transport".
2. If no existing category fits and the description is specific enough, coin a NEW category
   of 1-2 words in the requested language. For example "Langganan Netflix" could become
   "Langganan" or "Hiburan Digital"; "Bayar Listrik" could become "Tagihan Rumah".
3. If the description is too vague ("Lain-lain", "Sesuatu", "Pembayaran") to fit an existing
   category or to justify a new one, answer "Lainnya" for Indonesian ('id') or "Others" for English ('en').
4. Answer with the category name only, through the provided function."""

USER_PROMPT_TEMPLATE = """Expense description: "{description}"
Existing categories: {existing_categories}
Language for a new category (if any): {language}
Fallback label for vague descriptions: {fallback_label}"""


def _format_existing_categories(categories: Sequence[str]) -> str:
    if not categories:
        return "(none)"
    return ", ".join(f'"{category}"' for category in categories)


def _build_user_prompt(request: CategorySuggestionRequest) -> str:
    return USER_PROMPT_TEMPLATE.format(
        description=request.description,
        existing_categories=_format_existing_categories(request.existing_categories),
        language=request.language,
        fallback_label=other_label(request.language),
    )


class OpenAICategoryProvider:
    """
    ChatGPT-backed provider that suggests a category for one expense description.

    Uses function calling so the output maps onto CategorySuggestionResponse
    without free-text scraping.
    """

    name = "openai"

    def __init__(self, settings: Any | None = None):
        self._settings = settings
        if settings and settings.openai:
            self._client = AsyncOpenAI(
                api_key=settings.openai.api_key,
                base_url=settings.openai.api_base,
                timeout=settings.timeout_seconds,
            )
            self._model = settings.openai.model
            self._temperature = settings.temperature
            self._max_tokens = settings.max_output_tokens
        else:
            self._client = None
            self._model = None
            self._temperature = 0.2
            self._max_tokens = 64

    async def suggest(self, request: CategorySuggestionRequest) -> CategorySuggestionResponse:
        if not self._client:
            raise RuntimeError("OpenAI client not configured. Check OPENAI_API_KEY, OPENAI_MODEL, OPENAI_API_BASE.")

        user_prompt = _build_user_prompt(request)
        logger.info(
            {
                "event": "openai_category_request",
                "provider": self.name,
                "model": self._model,
                "prompt_hash": hash_payload({"system": SYSTEM_PROMPT, "user": user_prompt}),
                "description": text_fingerprint(request.description),
                "language": request.language,
            }
        )

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                tools=[
                    {
                        "type": "function",
                        "function": {
                            "name": FUNCTION_NAME,
                            "description": "Return the category for the expense description.",
                            "parameters": CATEGORY_SCHEMA,
                        },
                    }
                ],
                tool_choice={"type": "function", "function": {"name": FUNCTION_NAME}},
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except (APIError, APITimeoutError) as exc:
            logger.error(
                {
                    "event": "openai_category_error",
                    "provider": self.name,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                }
            )
            raise CategorySuggestionError(f"OpenAI category request failed: {type(exc).__name__}") from exc

        tool_calls = response.choices[0].message.tool_calls
        if not tool_calls:
            logger.warning({"event": "openai_no_tool_calls", "provider": self.name})
            raise CategorySuggestionError("OpenAI response did not include a category function call")

        try:
            parsed = json.loads(tool_calls[0].function.arguments)
        except json.JSONDecodeError as exc:
            logger.error({"event": "openai_json_parse_error", "provider": self.name, "error_message": str(exc)})
            raise CategorySuggestionError("OpenAI category payload is not valid JSON") from exc

        category = parsed.get("suggested_category") if isinstance(parsed, dict) else None
        if not isinstance(category, str):
            raise CategorySuggestionError("OpenAI category payload is missing 'suggested_category'")

        logger.info(
            {
                "event": "openai_category_response",
                "provider": self.name,
                "suggested_category": category,
                "response_hash": hash_payload(parsed),
            }
        )
        return CategorySuggestionResponse(category=category)
