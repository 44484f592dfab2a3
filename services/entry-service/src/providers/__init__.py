"""Pluggable provider implementations for category suggestion."""

from .openai_category import OpenAICategoryProvider

__all__ = ["OpenAICategoryProvider"]
