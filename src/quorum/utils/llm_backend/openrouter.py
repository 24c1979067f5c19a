import asyncio
import logging
import random
import time
from typing import Optional

import httpx
from openai import AsyncOpenAI

from quorum.config import config
from quorum.utils.llm_backend.base import LLMBackend, LLMResponse

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

RETRYABLE_PATTERNS = [
    "connection", "connect", "network", "socket", "reset by peer", "broken pipe", "eof",
    "ssl", "tls", "handshake", "closed", "timeout", "timed out", "deadline exceeded",
    "rate limit", "rate_limit", "too many requests", "quota exceeded", "throttl",
    "429", "500", "502", "503", "504", "520", "521", "522", "523", "524",
    "service unavailable", "bad gateway", "gateway timeout", "internal server error",
    "server error", "temporarily unavailable", "overloaded", "capacity", "upstream",
    "model unavailable",
]


class OpenRouterBackend(LLMBackend):
    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        request_timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(model or config.DEFAULT_MODEL)
        self.max_retries = config.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = 3.0
        self.max_delay = 120.0

        if client is not None:
            self._http_client = None
            self.client = client
            return

        api_key = api_key or config.OPENROUTER_API_KEY
        if not api_key:
            raise ValueError("No OpenRouter API key found. Set OPENROUTER_API_KEY")

        read_timeout = request_timeout or config.LLM_REQUEST_TIMEOUT
        timeout = httpx.Timeout(read_timeout, connect=30.0, read=read_timeout)
        self._http_client = httpx.AsyncClient(timeout=timeout)
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or OPENROUTER_BASE_URL,
            http_client=self._http_client,
            max_retries=0,
        )
        logger.debug(f"[OpenRouter] initialized model={self.model}")

    def is_available(self) -> bool:
        return self.client is not None

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    def _is_retryable_error(self, error: Exception) -> bool:
        error_str = str(error).lower()
        return any(pattern in error_str for pattern in RETRYABLE_PATTERNS)

    async def _retry_with_backoff(self, func):
        last_exception = None
        for attempt in range(self.max_retries + 1):
            try:
                return await func()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_exception = e
                if not self._is_retryable_error(e):
                    raise
                if attempt >= self.max_retries:
                    logger.warning(f"[OpenRouter] all {self.max_retries + 1} attempts failed: {e}")
                    raise
                delay = min(self.max_delay, self.base_delay * (2 ** attempt)) + random.uniform(0, 2)
                logger.info(
                    f"[OpenRouter] attempt {attempt + 1}/{self.max_retries + 1} failed: {e}; retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
        raise last_exception

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: int = 4000,
                       temperature: float = 0.2, **kwargs) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request_params = {"model": self.model, "messages": messages,
                          "max_tokens": max_tokens or config.LLM_MAX_TOKENS, "temperature": temperature}

        async def _make_request():
            response = await self.client.chat.completions.create(**request_params, **kwargs)
            if not response.choices:
                raise ValueError("OpenRouter API returned empty choices array")
            return response

        t0 = time.perf_counter()
        response = await self._retry_with_backoff(_make_request)
        latency_ms = (time.perf_counter() - t0) * 1000.0
        usage = response.usage
        return LLMResponse(
            text=response.choices[0].message.content or "",
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            model=self.model,
            latency_ms=latency_ms,
            metadata={"provider": "openrouter", "stop_reason": response.choices[0].finish_reason},
        )
