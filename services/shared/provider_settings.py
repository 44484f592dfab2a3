from __future__ import annotations

"""
Shared helpers for configuring the pluggable category suggestion provider.

The entry service reads the same family of environment variables for provider
selection, outbound call tuning, and the policy that decides when the provider
is consulted at all. Parsing and validating them in one place keeps the
FastAPI wiring and the tests on identical settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

SUPPORTED_PROVIDERS = frozenset({"deterministic", "mock", "openai"})
SUPPORTED_AI_POLICIES = frozenset({"off", "low_confidence", "always"})
REQUIRED_OPENAI_ENV_VARS = ("OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_API_BASE")


class ProviderSettingsError(RuntimeError):
    """Raised when provider configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class OpenAIConfig:
    api_key: str
    model: str
    api_base: str


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    provider_name: str
    timeout_seconds: float
    temperature: float
    max_output_tokens: int
    ai_policy: str = "low_confidence"
    openai: Optional[OpenAIConfig] = None


def load_provider_settings(
    *,
    provider_env: str,
    timeout_env: str,
    temperature_env: str,
    max_tokens_env: str,
    policy_env: str,
    default_provider: str = "deterministic",
    default_timeout: float = 10.0,
    default_temperature: float = 0.2,
    default_max_tokens: int = 64,
    default_policy: str = "low_confidence",
) -> ProviderSettings:
    """
    Construct ProviderSettings for the category suggestion stack.

    Args:
        provider_env: Env var that selects the provider implementation.
        timeout_env: Env var that overrides outbound request timeouts.
        temperature_env: Env var that tunes generation randomness.
        max_tokens_env: Env var that caps model responses.
        policy_env: Env var that selects when the provider is consulted
            (`off`, `low_confidence`, `always`).
        default_*: Fallback values when the env var is unset/empty.
    """

    provider_name = _normalize_provider(os.getenv(provider_env, default_provider))
    timeout_seconds = _parse_float(os.getenv(timeout_env), default_timeout, timeout_env)
    temperature = _parse_float(os.getenv(temperature_env), default_temperature, temperature_env)
    max_output_tokens = _parse_int(os.getenv(max_tokens_env), default_max_tokens, max_tokens_env)
    ai_policy = _normalize_policy(os.getenv(policy_env), default_policy, policy_env)

    openai_config: Optional[OpenAIConfig] = None
    if provider_name == "openai":
        openai_config = _build_openai_config(provider_env)

    return ProviderSettings(
        provider_name=provider_name,
        timeout_seconds=timeout_seconds,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        ai_policy=ai_policy,
        openai=openai_config,
    )


def _normalize_provider(raw_value: Optional[str]) -> str:
    candidate = (raw_value or "").strip().lower()
    if not candidate:
        candidate = "deterministic"

    if candidate not in SUPPORTED_PROVIDERS:
        raise ProviderSettingsError(f"Unsupported provider '{candidate}'")
    return candidate


def _normalize_policy(raw_value: Optional[str], default: str, env_key: str) -> str:
    candidate = (raw_value or "").strip().lower() or default
    if candidate not in SUPPORTED_AI_POLICIES:
        allowed = ", ".join(sorted(SUPPORTED_AI_POLICIES))
        raise ProviderSettingsError(f"{env_key} must be one of {allowed} (received '{raw_value}')")
    return candidate


def _parse_float(raw_value: Optional[str], default: float, env_key: str) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return float(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be numeric (received '{raw_value}')") from exc


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be an integer (received '{raw_value}')") from exc


def _build_openai_config(provider_env: str) -> OpenAIConfig:
    missing = [env_key for env_key in REQUIRED_OPENAI_ENV_VARS if not os.getenv(env_key)]
    if missing:
        formatted_missing = ", ".join(missing)
        raise ProviderSettingsError(
            f"{provider_env}=openai requires the following env vars: {formatted_missing}"
        )

    return OpenAIConfig(
        api_key=os.environ["OPENAI_API_KEY"].strip(),
        model=os.environ["OPENAI_MODEL"].strip(),
        api_base=os.environ["OPENAI_API_BASE"].strip(),
    )
