import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"


def hash_payload(value: Any) -> str:
    """
    Return a stable SHA-256 hash for the provided payload without leaking contents.

    Strings are encoded as UTF-8, bytes are used as-is, and arbitrary objects are
    serialized via JSON (falling back to repr()) before hashing.
    """

    if value is None:
        normalized = b"null"
    elif isinstance(value, bytes):
        normalized = value
    elif isinstance(value, str):
        normalized = value.encode("utf-8")
    else:
        try:
            normalized = json.dumps(value, sort_keys=True, default=str).encode("utf-8")
        except TypeError:
            normalized = repr(value).encode("utf-8")

    return hashlib.sha256(normalized).hexdigest()


def text_fingerprint(text: str | None) -> dict[str, Any]:
    """
    Summarize free text typed by a user for log records.

    Entry descriptions can carry personal details, so logs only ever see the
    hash and the length of the original string.
    """

    if text is None:
        return {"hash": None, "length": 0}
    return {"hash": hash_payload(text), "length": len(text)}


def redact_fields(
    payload: Mapping[str, Any],
    allowed_keys: Iterable[str],
    *,
    placeholder: str = REDACTED,
) -> dict[str, Any]:
    """
    Produce a shallow copy that preserves only the whitelisted keys and redacts the rest.
    """

    whitelist = set(allowed_keys)
    return {key: (value if key in whitelist else placeholder) for key, value in payload.items()}
