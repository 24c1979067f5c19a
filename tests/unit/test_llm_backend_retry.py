"""tests for LLM backend retry logic and error handling"""

import asyncio
import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from quorum.utils.llm_backend import HTTPBackend, OpenRouterBackend, create_backend


class MockOpenAIResponse:
    """Mock OpenAI SDK response for OpenRouter backend."""
    def __init__(self, content="test response", usage=None):
        self.choices = [
            type('Choice', (), {
                'message': type('Message', (), {'content': content})(),
                'finish_reason': 'stop'
            })()
        ]
        if usage is None:
            usage = type('Usage', (), {'prompt_tokens': 100, 'completion_tokens': 50})()
        self.usage = usage


def openrouter_with(side_effect, max_retries=3):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect)
    backend = OpenRouterBackend(model="x-ai/grok-4.1-fast", client=client, max_retries=max_retries)
    return backend, client


class TestOpenRouterBackoff(unittest.TestCase):

    @patch('quorum.utils.llm_backend.openrouter.asyncio.sleep', new_callable=AsyncMock)
    def test_backoff_increases_exponentially(self, mock_sleep):
        backend, client = openrouter_with([
            Exception("Connection reset by peer"),
            Exception("Connection reset by peer"),
            Exception("Connection reset by peer"),
            MockOpenAIResponse(),
        ])
        response = asyncio.run(backend.generate("test prompt", system_prompt="system"))

        self.assertEqual(response.text, "test response")
        self.assertEqual(response.prompt_tokens, 100)
        self.assertEqual(client.chat.completions.create.await_count, 4)
        # base delay is 3.0s, so delays should be ~3s, ~6s, ~12s
        delays = [c.args[0] for c in mock_sleep.await_args_list]
        self.assertEqual(len(delays), 3)
        self.assertGreater(delays[1], delays[0])
        self.assertGreater(delays[2], delays[1])
        self.assertGreaterEqual(delays[0], 3.0)
        self.assertLessEqual(delays[0], 5.0)

    @patch('quorum.utils.llm_backend.openrouter.asyncio.sleep', new_callable=AsyncMock)
    def test_backoff_respects_max_delay(self, mock_sleep):
        backend, _ = openrouter_with([Exception("503 service unavailable")] * 8 + [MockOpenAIResponse()], max_retries=8)
        asyncio.run(backend.generate("test prompt"))
        for c in mock_sleep.await_args_list:
            self.assertLessEqual(c.args[0], 122.0)

    @patch('quorum.utils.llm_backend.openrouter.asyncio.sleep', new_callable=AsyncMock)
    def test_non_retryable_error_raises_immediately(self, mock_sleep):
        backend, client = openrouter_with(ValueError("invalid api key"))
        with self.assertRaises(ValueError):
            asyncio.run(backend.generate("test prompt"))
        self.assertEqual(client.chat.completions.create.await_count, 1)
        mock_sleep.assert_not_awaited()

    @patch('quorum.utils.llm_backend.openrouter.asyncio.sleep', new_callable=AsyncMock)
    def test_gives_up_after_max_retries(self, mock_sleep):
        backend, client = openrouter_with(Exception("rate limit exceeded"), max_retries=2)
        with self.assertRaises(Exception):
            asyncio.run(backend.generate("test prompt"))
        self.assertEqual(client.chat.completions.create.await_count, 3)
        self.assertEqual(mock_sleep.await_count, 2)

    @patch('quorum.utils.llm_backend.openrouter.asyncio.sleep', new_callable=AsyncMock)
    def test_empty_choices_is_not_retried(self, mock_sleep):
        empty = MockOpenAIResponse()
        empty.choices = []
        backend, _ = openrouter_with([empty])
        with self.assertRaises(ValueError):
            asyncio.run(backend.generate("test prompt"))
        mock_sleep.assert_not_awaited()

    def test_retryable_classification(self):
        backend, _ = openrouter_with([])
        self.assertTrue(backend._is_retryable_error(Exception("Request timed out")))
        self.assertTrue(backend._is_retryable_error(Exception("HTTP 429 Too Many Requests")))
        self.assertTrue(backend._is_retryable_error(Exception("upstream overloaded")))
        self.assertFalse(backend._is_retryable_error(Exception("invalid request: bad model")))

    def test_requires_api_key_without_client(self):
        with patch('quorum.utils.llm_backend.openrouter.config') as mock_config:
            mock_config.OPENROUTER_API_KEY = None
            mock_config.LLM_MAX_RETRIES = 2
            mock_config.DEFAULT_MODEL = "x-ai/grok-4.1-fast"
            with self.assertRaises(ValueError):
                OpenRouterBackend()


def completion(content="hello"):
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3},
    }


class TestHTTPBackend(unittest.TestCase):

    def run_backend(self, handler, **kwargs):
        async def _run():
            backend = HTTPBackend(
                model="test-model",
                api_base="https://llm.example",
                api_key="k",
                transport=httpx.MockTransport(handler),
                **kwargs,
            )
            try:
                return await backend.generate("prompt", system_prompt="system", max_tokens=100)
            finally:
                await backend.aclose()
        return asyncio.run(_run())

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_success_payload(self, mock_sleep):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=completion("  answer  "))

        response = self.run_backend(handler)
        self.assertEqual(response.text, "answer")
        self.assertEqual(response.prompt_tokens, 12)
        self.assertEqual(response.output_tokens, 3)
        self.assertEqual(seen[0].url.path, "/v1/chat/completions")
        self.assertEqual(seen[0].headers["Authorization"], "Bearer k")
        body = json.loads(seen[0].content)
        self.assertEqual(body["messages"][0], {"role": "system", "content": "system"})
        self.assertEqual(body["max_tokens"], 100)
        mock_sleep.assert_not_awaited()

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_retries_on_429_then_succeeds(self, mock_sleep):
        statuses = [429, 503]

        def handler(request):
            if statuses:
                return httpx.Response(statuses.pop(0))
            return httpx.Response(200, json=completion())

        response = self.run_backend(handler)
        self.assertEqual(response.text, "hello")
        self.assertEqual(mock_sleep.await_count, 2)

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_gives_up_after_max_attempts(self, mock_sleep):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with self.assertRaises(httpx.HTTPStatusError):
            self.run_backend(handler, max_attempts=3)
        self.assertEqual(len(calls), 3)
        self.assertEqual(mock_sleep.await_count, 2)

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_client_error_not_retried(self, mock_sleep):
        with self.assertRaises(httpx.HTTPStatusError):
            self.run_backend(lambda request: httpx.Response(401))
        mock_sleep.assert_not_awaited()

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_transport_error_retried(self, mock_sleep):
        failures = [httpx.ConnectError("refused")]

        def handler(request):
            if failures:
                raise failures.pop(0)
            return httpx.Response(200, json=completion())

        self.assertEqual(self.run_backend(handler).text, "hello")
        self.assertEqual(mock_sleep.await_count, 1)

    @patch('quorum.utils.llm_backend.http_backend.asyncio.sleep', new_callable=AsyncMock)
    def test_malformed_payload(self, mock_sleep):
        with self.assertRaises(ValueError):
            self.run_backend(lambda request: httpx.Response(200, json={"choices": []}))


class TestFactory(unittest.TestCase):

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_backend("carrier-pigeon")

    def test_http_backend(self):
        backend = create_backend("http", "some-model", api_base="https://llm.example")
        self.assertIsInstance(backend, HTTPBackend)
        self.assertEqual(backend.model, "some-model")
        asyncio.run(backend.aclose())


if __name__ == "__main__":
    unittest.main()
