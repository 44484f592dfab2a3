"""Deterministic keyword categorization for expense inputs.

Rules are evaluated in a fixed order and the first match wins, so an input
such as "beli kopi" lands in Food (evaluated before Shopping). Anything that
matches no rule is Other.

Keywords are plain substrings tested against the lowercased input; "makan"
therefore also matches "makanan". The keyword table is configuration data:

  * Environment variable CATEGORY_RULES_FILE (JSON) can supply overrides:
        { "Makanan": ["warteg", "bakso"], "Transport": ["ojek"] }
    Lists replace (not merge) the default keywords of the listed categories.
    Keys are the category storage values ("Makanan", "Transport", "Belanja").
  * Call `reload_rules()` after changing the file or the env var.
"""

from __future__ import annotations

import json
import logging
import os
import re
from functools import lru_cache
from typing import Dict, List, NamedTuple, Pattern, Sequence, Tuple

from entry_model import KnownCategory

logger = logging.getLogger(__name__)

RULES_FILE_ENV_VAR = "CATEGORY_RULES_FILE"

DEFAULT_CATEGORY = KnownCategory.OTHER

# Evaluation order is significant.
DEFAULT_KEYWORDS: Tuple[Tuple[KnownCategory, Tuple[str, ...]], ...] = (
    (
        KnownCategory.FOOD,
        ("makan", "food", "sarapan", "siang", "malam", "nasi", "mie", "kopi", "teh",
         "lunch", "dinner", "breakfast", "coffee", "tea"),
    ),
    (
        KnownCategory.TRANSPORT,
        ("transport", "gojek", "grab", "bensin", "parkir", "tol", "bis", "kereta", "gas",
         "parking", "bus", "train", "taxi"),
    ),
    (
        KnownCategory.SHOPPING,
        ("belanja", "shopping", "beli", "toko", "online", "pasar", "buy", "store", "market"),
    ),
)


class CategoryRule(NamedTuple):
    category: KnownCategory
    pattern: Pattern[str]


def build_rules(keywords: Sequence[Tuple[KnownCategory, Sequence[str]]]) -> List[CategoryRule]:
    """Compile (category, keywords) pairs into ordered substring rules."""
    rules: List[CategoryRule] = []
    for category, words in keywords:
        cleaned = [word.strip().lower() for word in words if word and word.strip()]
        if not cleaned:
            continue
        alternation = "|".join(re.escape(word) for word in cleaned)
        rules.append(CategoryRule(category, re.compile(f"(?:{alternation})")))
    return rules


def classify_category(text: str, rules: Sequence[CategoryRule] | None = None) -> KnownCategory:
    """Return the first rule category whose keywords occur in `text`, else Other."""
    lowered = (text or "").lower()
    active_rules = default_rules() if rules is None else rules
    for rule in active_rules:
        if rule.pattern.search(lowered):
            return rule.category
    return DEFAULT_CATEGORY


@lru_cache(maxsize=1)
def _compiled_default_rules() -> Tuple[CategoryRule, ...]:
    overrides = _load_overrides_from_file()
    keywords = [(category, overrides.get(category, words)) for category, words in DEFAULT_KEYWORDS]
    return tuple(build_rules(keywords))


def default_rules() -> Tuple[CategoryRule, ...]:
    return _compiled_default_rules()


def reload_rules() -> None:
    _compiled_default_rules.cache_clear()


def _load_overrides_from_file() -> Dict[KnownCategory, List[str]]:
    path = os.getenv(RULES_FILE_ENV_VAR)
    if not path:
        return {}
    if not os.path.isfile(path):
        logger.warning({"event": "category_rules_file_missing", "path": path})
        return {}

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning({"event": "category_rules_file_invalid", "path": path, "error": str(exc)})
        return {}

    if not isinstance(data, dict):
        logger.warning({"event": "category_rules_file_invalid", "path": path, "error": "expected an object"})
        return {}

    overrides: Dict[KnownCategory, List[str]] = {}
    for key, value in data.items():
        try:
            category = KnownCategory(key)
        except ValueError:
            logger.warning({"event": "category_rules_unknown_category", "category": key})
            continue
        if category is DEFAULT_CATEGORY or not isinstance(value, list):
            continue
        overrides[category] = [str(word) for word in value if isinstance(word, str)]
    return overrides
