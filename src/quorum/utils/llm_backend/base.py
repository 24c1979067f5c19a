"""llm backend base classes shared by every generation backend"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class LLMResponse:
    """unified response format from any llm backend"""
    text: str
    prompt_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    latency_ms: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMBackend(ABC):
    """abstract base class for all llm backends. generation is async so reviewer calls can fan out on one event loop."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.2,
        **kwargs
    ) -> LLMResponse:
        """generate text for the prompt. any exception counts as a failed call for the caller."""

    @abstractmethod
    def is_available(self) -> bool:
        """check that api keys and clients are configured"""

    async def aclose(self) -> None:
        """release network resources (no-op by default)"""
        return None
