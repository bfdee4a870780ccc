"""
LLM provider interfaces

Contracts the follow-up draft generator depends on, so the provider can be
swapped (or mocked in tests) without touching the service.
"""

from abc import abstractmethod
from enum import Enum
from typing import Dict, List, Protocol, runtime_checkable


class LLMProvider(str, Enum):
    """Supported LLM providers"""

    OLLAMA = "ollama"


@runtime_checkable
class ILLM(Protocol):
    """
    Base interface for LLM providers.

    Example:
        ```python
        draft = await llm.generate_chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.4,
            max_tokens=600,
        )
        ```
    """

    @property
    @abstractmethod
    def provider(self) -> LLMProvider: ...

    @property
    @abstractmethod
    def model_name(self) -> str: ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs,
    ) -> str:
        """
        Generate text from a single prompt.

        Raises:
            LLMError: If generation fails
        """
        ...

    @abstractmethod
    async def generate_chat(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs,
    ) -> str:
        """
        Generate a reply to a list of {"role": ..., "content": ...} messages.

        Raises:
            LLMError: If generation fails
        """
        ...


class LLMError(Exception):
    """Base LLM error"""

    pass


class LLMConnectionError(LLMError):
    """The provider could not be reached"""

    pass


class LLMGenerationError(LLMError):
    """The provider failed while generating"""

    pass
