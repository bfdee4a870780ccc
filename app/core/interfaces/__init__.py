"""
Core Interfaces Module

Abstract interfaces (ports) that services depend on instead of concrete
integrations.
"""

from app.core.interfaces.llm import (
    ILLM,
    LLMConnectionError,
    LLMError,
    LLMGenerationError,
    LLMProvider,
)

__all__ = [
    "ILLM",
    "LLMProvider",
    "LLMError",
    "LLMConnectionError",
    "LLMGenerationError",
]
