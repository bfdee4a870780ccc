"""
LLM Integrations

- Ollama LLM implementation (local models)
"""

from app.integrations.llm.ollama import OllamaLLM, create_ollama_llm

__all__ = [
    "OllamaLLM",
    "create_ollama_llm",
]
