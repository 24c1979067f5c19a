"""openai-compatible chat completions over a pooled httpx.AsyncClient with bounded concurrency and retry on 429/5xx"""
from __future__ import annotations

from typing import Any, Dict, Optional
import asyncio
import logging
import random
import time

import httpx

from quorum.config import config
from quorum.utils.llm_backend.base import LLMBackend, LLMResponse

logger = logging.getLogger(__name__)

Json = Dict[str, Any]

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class HTTPBackend(LLMBackend):
    def __init__(
        self,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        max_concurrency: int = 8,
        request_timeout_s: Optional[float] = None,
        max_attempts: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(model or config.DEFAULT_MODEL)
        self.api_base = (api_base or config.LLM_API_BASE).rstrip("/")
        self.api_key = api_key if api_key is not None else (config.LLM_API_KEY or "")
        self.max_attempts = max_attempts
        self._sema = asyncio.Semaphore(max_concurrency)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers=headers,
            timeout=request_timeout_s or config.LLM_REQUEST_TIMEOUT,
            transport=transport,
        )

    def is_available(self) -> bool:
        return bool(self.api_base)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: Json) -> Json:
        attempt = 0
        while True:
            try:
                resp = await self._client.post("/v1/chat/completions", json=payload)
                if resp.status_code in RETRYABLE_STATUS:
                    raise httpx.HTTPStatusError("retryable", request=resp.request, response=resp)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code not in RETRYABLE_STATUS:
                    raise
                attempt += 1
                if attempt >= self.max_attempts:
                    raise
            except httpx.TransportError:
                attempt += 1
                if attempt >= self.max_attempts:
                    raise
            backoff = min(1.0 * (2 ** (attempt - 1)), 8.0) + random.random() * 0.25
            logger.info(f"[HTTPBackend] attempt {attempt}/{self.max_attempts} failed, retrying in {backoff:.2f}s")
            await asyncio.sleep(backoff)

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: int = 4000,
                       temperature: float = 0.2, **kwargs) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload: Json = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        payload.update(kwargs)

        t0 = time.perf_counter()
        async with self._sema:
            data = await self._post(payload)
        latency_ms = (time.perf_counter() - t0) * 1000.0

        try:
            text = data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ValueError(f"Malformed chat completion payload: {exc}") from exc
        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            prompt_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            model=self.model,
            latency_ms=latency_ms,
            metadata={"provider": "http"},
        )
