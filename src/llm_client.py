"""
Completion Provider Client
==========================
Thin async wrapper around an OpenAI-compatible `/chat/completions` endpoint
(GitHub Models by default), plus the bounded retry-on-429 policy used for
every queued call.

Rate-limit detection:
  * HTTP 429
  * an error payload mentioning "Too many requests" or "rate limit"
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

log = logging.getLogger("llm_client")

RATE_LIMIT_MARKERS = ("too many requests", "rate limit")
USER_AGENT = "ai-health-tool"


class CompletionError(Exception):
    """The completion provider failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class RateLimitError(CompletionError):
    """The completion provider reported that our quota is exhausted."""


def _mentions_rate_limit(payload: Any) -> bool:
    if payload is None:
        return False
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
    low = text.lower()
    return any(marker in low for marker in RATE_LIMIT_MARKERS)


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_completion_error(response: httpx.Response) -> Dict[str, Any]:
    """Return the decoded body or raise RateLimitError / CompletionError."""
    payload = _payload(response)
    status = response.status_code

    if status == 429:
        raise RateLimitError("Rate limited by completion provider (HTTP 429)", status, payload)

    if status >= 400:
        error = payload.get("error") if isinstance(payload, dict) else payload
        if _mentions_rate_limit(error):
            raise RateLimitError(f"Rate limited by completion provider (HTTP {status})", status, payload)
        raise CompletionError(f"Completion provider returned HTTP {status}", status, payload)

    if not isinstance(payload, dict):
        raise CompletionError("Completion provider returned a non-JSON body", status, payload)

    if payload.get("error") and not payload.get("choices"):
        if _mentions_rate_limit(payload["error"]):
            raise RateLimitError("Rate limited by completion provider", status, payload)
        raise CompletionError(f"Completion provider error: {payload['error']}", status, payload)

    return payload


class RateLimitRetry:
    """Retry an async operation on RateLimitError only.

    Waits `base_delay * 2**retries_used + uniform(0, max_jitter)` seconds
    between attempts and makes at most `retries + 1` attempts. The final
    error is re-raised unchanged; any other exception propagates at once.
    """

    def __init__(
        self,
        retries: int = 1,
        base_delay: float = 4.0,
        max_jitter: float = 0.4,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.retries = max(0, int(retries))
        self.base_delay = max(0.0, float(base_delay))
        self.max_jitter = max(0.0, float(max_jitter))
        self._sleep = sleep

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        log.warning(
            "Rate limited, retrying in %.1fs (attempt %d)",
            delay,
            retry_state.attempt_number + 1,
        )

    async def __call__(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2) + wait_random(0, self.max_jitter),
            retry=retry_if_exception_type(RateLimitError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(operation)


class CompletionClient:
    """POSTs chat messages to `{api_url}/chat/completions`."""

    def __init__(
        self,
        api_url: str,
        model: str,
        api_key: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_completion_tokens: int = 300,
    ) -> Dict[str, Any]:
        body = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_completion_tokens,
        }
        try:
            response = await self._http.post(
                f"{self.api_url}/chat/completions",
                json=body,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise CompletionError(f"Completion request failed: {e}") from e
        return raise_for_completion_error(response)

    async def aclose(self) -> None:
        await self._http.aclose()


def extract_message(payload: Dict[str, Any]) -> str:
    """First choice's message content, or a placeholder when absent."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    return content or "No message generated."
