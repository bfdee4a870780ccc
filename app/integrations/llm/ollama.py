"""
Ollama implementation of the ILLM interface

Local LLM generation through langchain-ollama's ChatOllama. Instances are
cached per (model, temperature, num_predict) and shared by all callers.
"""

import logging
import re
from typing import Dict, List

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama

from app.config.settings import get_settings
from app.core.interfaces.llm import ILLM, LLMConnectionError, LLMGenerationError, LLMProvider

logger = logging.getLogger(__name__)

# Reasoning models (deepseek-r1, qwq) wrap their chain of thought in <think> tags
THINK_TAG_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL)


class OllamaLLM(ILLM):
    """
    Ollama implementation of ILLM.

    A ChatOllama instance is not created here but on demand, with caching.
    """

    _llm_cache: dict[tuple[str, float, int | None], ChatOllama] = {}

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
    ):
        self.settings = get_settings()
        self._model_name = model_name or self.settings.OLLAMA_API_MODEL
        self._base_url = base_url or self.settings.OLLAMA_API_URL
        self._timeout = timeout or self.settings.OLLAMA_REQUEST_TIMEOUT
        logger.info(f"Initialized OllamaLLM wrapper: model={self._model_name}, base_url={self._base_url}")

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.OLLAMA

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs,
    ) -> str:
        """Generate text from a simple prompt."""
        return await self.generate_chat(
            [{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def generate_chat(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        **kwargs,
    ) -> str:
        """Generate a response in a chat format, with <think> blocks removed."""
        try:
            llm = self.get_llm(temperature=temperature, num_predict=max_tokens)
            response = await llm.ainvoke(self._to_langchain_messages(messages))
            content = response.content if isinstance(response.content, str) else str(response.content)
            return self.clean_think_tags(content)
        except httpx.ConnectError as e:
            logger.error(f"Connection error to Ollama: {e}")
            raise LLMConnectionError(f"Could not connect to Ollama at {self._base_url}") from e
        except Exception as e:
            logger.error(f"Error in chat generation: {e}")
            raise LLMGenerationError(f"Failed to generate chat response: {e}") from e

    @staticmethod
    def _to_langchain_messages(messages: List[Dict[str, str]]) -> List[BaseMessage]:
        return [
            SystemMessage(content=msg["content"])
            if msg.get("role") == "system"
            else AIMessage(content=msg["content"])
            if msg.get("role") == "assistant"
            else HumanMessage(content=msg.get("content", ""))
            for msg in messages
        ]

    @staticmethod
    def clean_think_tags(response: str) -> str:
        if not response:
            return response
        return THINK_TAG_PATTERN.sub("", response).strip()

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{self._base_url}/api/tags", timeout=5.0)
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    def get_llm(self, temperature: float = 0.7, num_predict: int | None = None) -> ChatOllama:
        """Get a cached ChatOllama instance."""
        cache_key = (self._model_name, temperature, num_predict)

        if cache_key in OllamaLLM._llm_cache:
            return OllamaLLM._llm_cache[cache_key]

        llm_instance = ChatOllama(
            model=self._model_name,
            base_url=self._base_url,
            temperature=temperature,
            num_predict=num_predict,
            repeat_penalty=1.1,
            top_k=40,
            top_p=0.9,
            client_kwargs={"timeout": self._timeout},
        )

        OllamaLLM._llm_cache[cache_key] = llm_instance
        logger.info(f"Created and cached ChatOllama instance: model={self._model_name}, temp={temperature}")

        return llm_instance


def create_ollama_llm(model_name: str | None = None, **kwargs) -> OllamaLLM:
    """Factory function to create an OllamaLLM instance."""
    return OllamaLLM(model_name=model_name, **kwargs)
