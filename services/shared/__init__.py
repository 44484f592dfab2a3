"""
Shared utilities for ChatExpense services.

This package contains code shared across the service and its tests:
- provider_settings: Configuration for the pluggable category suggestion provider
- observability: Logging, request context, tracing, and privacy utilities
"""

from .provider_settings import (
    SUPPORTED_AI_POLICIES,
    SUPPORTED_PROVIDERS,
    REQUIRED_OPENAI_ENV_VARS,
    ProviderSettingsError,
    OpenAIConfig,
    ProviderSettings,
    load_provider_settings,
)

__all__ = [
    "SUPPORTED_AI_POLICIES",
    "SUPPORTED_PROVIDERS",
    "REQUIRED_OPENAI_ENV_VARS",
    "ProviderSettingsError",
    "OpenAIConfig",
    "ProviderSettings",
    "load_provider_settings",
]
