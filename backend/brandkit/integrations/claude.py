"""Messages API client shared by every brand kit generator.

One ClaudeClient wraps an httpx.AsyncClient plus a circuit breaker. A call
is made of up to ``max_retries`` attempts; each attempt either settles the
call or names a delay before the next one. Rate limits honour
``retry-after`` (up to a minute), server errors and transport failures back
off exponentially, and auth or other 4xx answers are final.

complete() does not raise for transport or API trouble. The outcome is a
CompletionResult, and callers read ``success`` and ``error`` off it.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from brandkit.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from brandkit.core.config import get_settings
from brandkit.core.logging import claude_logger, get_logger

logger = get_logger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"
MESSAGES_PATH = "/v1/messages"
MAX_RETRY_AFTER_SECONDS = 60.0


@dataclass
class CompletionResult:
    """Outcome of one complete() call, successful or not."""

    success: bool
    text: str | None = None
    stop_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    error: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0
    request_id: str | None = None


def _reply_text(payload: dict[str, Any]) -> str:
    """Concatenate the text blocks of a Messages API reply."""
    blocks = payload.get("content") or []
    return "".join(
        block.get("text", "")
        for block in blocks
        if isinstance(block, dict) and block.get("type", "text") == "text"
    )


def _client_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json() if response.content else None
    except ValueError:
        return "Client error"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(payload)
    return "Client error"


class ClaudeClient:
    """Async Messages API client with retries and a circuit breaker.

    Every constructor argument falls back to the matching ``claude_*``
    setting. ``max_retries`` counts attempts, so 1 means a single try.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        settings = get_settings()

        self._api_key = api_key or settings.anthropic_api_key
        self._model = model or settings.claude_model
        self._timeout = timeout or settings.claude_timeout
        self._max_retries = max(1, max_retries or settings.claude_max_retries)
        self._retry_delay = retry_delay or settings.claude_retry_delay
        self._max_tokens = max_tokens or settings.claude_max_tokens

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.claude_circuit_failure_threshold,
                recovery_timeout=settings.claude_circuit_recovery_timeout,
            ),
            name="claude",
        )

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """True when an API key is configured."""
        return self._available

    @property
    def model(self) -> str:
        return self._model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "anthropic-version": ANTHROPIC_API_VERSION,
            }
            if self._api_key:
                headers["x-api-key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=ANTHROPIC_API_URL,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Claude client closed")

    def _backoff_delay(self, attempt: int) -> float | None:
        """Exponential delay before the next attempt, None on the last one."""
        if attempt >= self._max_retries - 1:
            return None
        return self._retry_delay * (2**attempt)

    def _build_body(
        self,
        user_prompt: str,
        system_prompt: str | None,
        max_tokens: int | None,
        temperature: float,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            body["system"] = system_prompt
        return body

    async def _attempt(
        self, body: dict[str, Any], attempt: int
    ) -> tuple[CompletionResult, float | None]:
        """Run one HTTP attempt.

        Returns the attempt's result and, when the call should be tried
        again, how long to wait first.
        """
        client = await self._get_client()
        started = time.monotonic()

        def elapsed() -> float:
            return (time.monotonic() - started) * 1000

        def failed(
            error: str,
            error_type: str,
            status_code: int | None = None,
            request_id: str | None = None,
            retry_in: float | None = None,
        ) -> tuple[CompletionResult, float | None]:
            duration_ms = elapsed()
            claude_logger.call_failed(
                self._model,
                duration_ms,
                error,
                error_type,
                attempt,
                status_code=status_code,
                request_id=request_id,
                retry_in=retry_in,
            )
            result = CompletionResult(
                success=False,
                error=error,
                status_code=status_code,
                request_id=request_id,
                duration_ms=duration_ms,
            )
            return result, retry_in

        try:
            response = await client.post(MESSAGES_PATH, json=body)
        except httpx.TimeoutException:
            await self._circuit_breaker.record_failure()
            return failed(
                f"Request timed out after {self._timeout}s",
                "TimeoutError",
                retry_in=self._backoff_delay(attempt),
            )
        except httpx.RequestError as e:
            await self._circuit_breaker.record_failure()
            return failed(
                f"Request failed: {e}",
                type(e).__name__,
                retry_in=self._backoff_delay(attempt),
            )

        status = response.status_code
        request_id = response.headers.get("request-id")

        if status == 429:
            await self._circuit_breaker.record_failure()
            retry_in: float | None = None
            try:
                retry_after = float(response.headers.get("retry-after") or 0)
            except ValueError:
                retry_after = 0.0
            if (
                attempt < self._max_retries - 1
                and 0 < retry_after <= MAX_RETRY_AFTER_SECONDS
            ):
                retry_in = retry_after
            return failed("Rate limit exceeded", "RateLimitError", 429, request_id, retry_in)

        if status in (401, 403):
            await self._circuit_breaker.record_failure()
            return failed(f"Authentication failed ({status})", "AuthError", status, request_id)

        if status >= 500:
            await self._circuit_breaker.record_failure()
            return failed(
                f"Server error ({status})",
                "ServerError",
                status,
                request_id,
                self._backoff_delay(attempt),
            )

        if status >= 400:
            message = _client_error_message(response)
            return failed(f"Client error ({status}): {message}", "ClientError", status, request_id)

        try:
            payload = response.json()
        except ValueError:
            return failed("Malformed API response", "DecodeError", status, request_id)
        if not isinstance(payload, dict):
            return failed("Malformed API response", "DecodeError", status, request_id)

        await self._circuit_breaker.record_success()
        usage = payload.get("usage") or {}
        result = CompletionResult(
            success=True,
            text=_reply_text(payload),
            stop_reason=payload.get("stop_reason"),
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            request_id=request_id,
            duration_ms=elapsed(),
        )
        claude_logger.call_succeeded(
            self._model,
            result.duration_ms,
            result.text or "",
            result.stop_reason,
            result.input_tokens,
            result.output_tokens,
            request_id,
        )
        return result, None

    async def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.0,
    ) -> CompletionResult:
        """Ask Claude for one reply.

        Args:
            user_prompt: The user message.
            system_prompt: Optional system prompt.
            max_tokens: Overrides the configured reply budget.
            temperature: Sampling temperature.

        Returns:
            CompletionResult; ``duration_ms`` covers every attempt.
        """
        if not self._available:
            claude_logger.call_refused("Missing API key")
            return CompletionResult(
                success=False, error="Claude not configured (missing API key)"
            )
        if not await self._circuit_breaker.can_execute():
            claude_logger.call_refused("Circuit breaker open")
            return CompletionResult(success=False, error="Circuit breaker is open")

        body = self._build_body(user_prompt, system_prompt, max_tokens, temperature)
        started = time.monotonic()
        result = CompletionResult(success=False, error="Request failed after all retries")

        for attempt in range(self._max_retries):
            claude_logger.call_started(self._model, user_prompt, system_prompt, attempt)
            result, retry_in = await self._attempt(body, attempt)
            if retry_in is None:
                break
            await asyncio.sleep(retry_in)

        result.duration_ms = (time.monotonic() - started) * 1000
        return result


claude_client: ClaudeClient | None = None


async def init_claude() -> ClaudeClient:
    """Create the process-wide client on first use."""
    global claude_client
    if claude_client is None:
        claude_client = ClaudeClient()
        if claude_client.available:
            logger.info("Claude client initialized", extra={"model": claude_client.model})
        else:
            logger.info("Claude not configured (missing API key)")
    return claude_client


async def close_claude() -> None:
    global claude_client
    if claude_client:
        await claude_client.close()
        claude_client = None


async def get_claude() -> ClaudeClient:
    """FastAPI dependency returning the shared client."""
    if claude_client is None:
        return await init_claude()
    return claude_client
