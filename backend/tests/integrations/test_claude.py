"""Tests for ClaudeClient against canned Messages API responses."""

import json
from collections.abc import Callable

import httpx
import pytest

from brandkit.integrations.claude import ANTHROPIC_API_URL, ClaudeClient


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> ClaudeClient:
    client = ClaudeClient(api_key="test-key", retry_delay=0.01, **kwargs)
    client._client = httpx.AsyncClient(
        base_url=ANTHROPIC_API_URL,
        transport=httpx.MockTransport(handler),
    )
    return client


class TestClaudeClient:
    @pytest.mark.asyncio
    async def test_success_joins_text_blocks(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "content": [
                        {"type": "text", "text": '{"a": '},
                        {"type": "text", "text": "1}"},
                    ],
                    "stop_reason": "end_turn",
                    "usage": {"input_tokens": 10, "output_tokens": 4},
                },
                headers={"request-id": "req_1"},
            )

        client = _client(handler)
        result = await client.complete("hello", system_prompt="be brief", temperature=0.7)
        await client.close()

        assert result.success
        assert result.text == '{"a": 1}'
        assert result.request_id == "req_1"
        assert seen[0]["system"] == "be brief"
        assert seen[0]["temperature"] == 0.7
        assert seen[0]["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self) -> None:
        client = ClaudeClient(api_key="")
        client._api_key = ""
        client._available = False

        result = await client.complete("hello")

        assert not result.success
        assert "not configured" in (result.error or "")

    @pytest.mark.asyncio
    async def test_auth_failure_not_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        client = _client(handler, max_retries=3)
        result = await client.complete("hello")

        assert not result.success
        assert result.status_code == 401
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_then_succeeds(self) -> None:
        responses = [
            httpx.Response(503),
            httpx.Response(200, json={"content": [{"type": "text", "text": "ok"}]}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        client = _client(handler, max_retries=2)
        result = await client.complete("hello")

        assert result.success
        assert result.text == "ok"
        assert client.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler, max_retries=1)
        result = await client.complete("hello")

        assert not result.success
        assert "timed out" in (result.error or "")

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self) -> None:
        responses = [
            httpx.Response(429, headers={"retry-after": "0.01"}),
            httpx.Response(200, json={"content": [{"type": "text", "text": "ok"}]}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        client = _client(handler, max_retries=2)
        result = await client.complete("hello")

        assert result.success
        assert responses == []

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after_is_final(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(429)

        client = _client(handler, max_retries=3)
        result = await client.complete("hello")

        assert not result.success
        assert result.status_code == 429
        assert result.error == "Rate limit exceeded"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_client_error_carries_api_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "max_tokens too large"}})

        client = _client(handler, max_retries=3)
        result = await client.complete("hello")

        assert not result.success
        assert result.error == "Client error (400): max_tokens too large"
        assert client.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_non_json_reply_is_failed_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>gateway</html>")

        client = _client(handler)
        result = await client.complete("hello")

        assert not result.success
        assert result.error == "Malformed API response"
