"""llm backend package: one async interface over openrouter and raw openai-compatible endpoints"""

from .base import LLMResponse, LLMBackend
from .openrouter import OpenRouterBackend
from .http_backend import HTTPBackend
from .factory import create_backend


__all__ = [
    "LLMResponse",
    "LLMBackend",
    "OpenRouterBackend",
    "HTTPBackend",
    "create_backend",
]
