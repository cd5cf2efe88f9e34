"""
Coaching Orchestrator
=====================
One coaching request moves through:

  Building Prompt -> Queued -> Calling Upstream ->
      Succeeded | RateLimitFallback | OtherFallback | HardFailure

Rate-limit and demo fallbacks are soft (HTTP 200 with a canned message);
only a genuine upstream failure on a non-demo request is a 502.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coaching.demo_data import demo_activities
from coaching.prompt_builder import build_coaching_prompt, build_messages, clean_message, data_synopsis
from coaching.response_log import ResponseLog
from llm_client import CompletionClient, RateLimitError, RateLimitRetry, extract_message
from llm_queue import CallQueue, RateGate

log = logging.getLogger("coaching")

RATE_LIMIT_MESSAGE = (
    "Rate limit reached. Try again in a few minutes. Meanwhile, here's a tip: stay "
    "consistent with small daily actions - a 10-minute walk, proper hydration, and "
    "light stretching can build lasting momentum."
)

DEMO_FALLBACK_MESSAGE = (
    "Here's a quick coaching tip while the AI is warming up: keep it consistent today. "
    "Add a 10-15 minute walk, hydrate, and wind down with light stretching. Small steps "
    "build big momentum - nice work!"
)


class CoachingRequest(BaseModel):
    """Body of POST /api/coach."""

    model_config = ConfigDict(populate_by_name=True)

    fitbit_data: Optional[Dict[str, Any]] = Field(default=None, alias="fitbitData")
    prompt: Optional[str] = None
    demo: bool = False

    @field_validator("demo", mode="before")
    @classmethod
    def _demo_flag(cls, value: Any) -> bool:
        return value is True or value == "true"

    @field_validator("prompt", mode="before")
    @classmethod
    def _prompt_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


@dataclass
class CoachingOutcome:
    status_code: int
    body: Dict[str, Any]
    state: str
    log_record: Optional[Dict[str, Any]] = field(default=None, repr=False)


class CoachingService:
    """Builds the prompt, runs the completion call through the queue, shapes the reply."""

    def __init__(
        self,
        client: CompletionClient,
        queue: CallQueue,
        gate: RateGate,
        retry: RateLimitRetry,
        response_log: ResponseLog,
        demo_mode: bool = False,
    ):
        self.client = client
        self.queue = queue
        self.gate = gate
        self.retry = retry
        self.response_log = response_log
        self.demo_mode = demo_mode

    def resolve_prompt(self, request: CoachingRequest, use_demo: bool):
        """Return (prompt, data_used). Free text wins over structured data."""
        direct = (request.prompt or "").strip()
        if direct:
            return direct, None
        data = request.fitbit_data or (demo_activities() if use_demo else None)
        return build_coaching_prompt(data), data

    async def _call_upstream(self, prompt: str) -> Dict[str, Any]:
        messages = build_messages(prompt)

        async def attempt() -> Dict[str, Any]:
            await self.gate.acquire()
            return await self.client.complete(messages)

        return await self.queue.enqueue(lambda: self.retry(attempt))

    def _record(self, prompt: str, message: str, **flags: Any) -> Dict[str, Any]:
        return self.response_log.append(prompt=prompt, message=message, **flags)

    async def coach(self, request: CoachingRequest) -> CoachingOutcome:
        use_demo = request.demo or self.demo_mode
        prompt, data_used = self.resolve_prompt(request, use_demo)
        if not prompt:
            return CoachingOutcome(400, {"error": "No prompt or data provided"}, "Rejected")

        queue_position = self.queue.depth
        try:
            payload = await self._call_upstream(prompt)
        except RateLimitError as e:
            log.warning("Rate limit exceeded, returning fallback message: %s", e)
            record = self._record(
                prompt, RATE_LIMIT_MESSAGE,
                rateLimited=True, fallback=True, demo=use_demo, queuePosition=queue_position,
            )
            body = {"message": RATE_LIMIT_MESSAGE, "queuePosition": queue_position, "rateLimited": True}
            return CoachingOutcome(200, body, "RateLimitFallback", record)
        except Exception as e:
            log.error("LLM API error: %s", e)
            if use_demo:
                record = self._record(
                    prompt, DEMO_FALLBACK_MESSAGE,
                    rateLimited=False, fallback=True, demo=True, queuePosition=queue_position,
                )
                body = {"message": DEMO_FALLBACK_MESSAGE, "queuePosition": queue_position}
                return CoachingOutcome(200, body, "OtherFallback", record)
            record = self._record(
                prompt, str(e),
                rateLimited=False, fallback=False, error=True, demo=False, queuePosition=queue_position,
            )
            body = {"error": "Failed to get coaching response", "details": str(e)}
            return CoachingOutcome(502, body, "HardFailure", record)

        message = clean_message(extract_message(payload)) or "No message generated."
        synopsis = data_synopsis(data_used)
        record = self._record(
            prompt, message,
            rateLimited=False, fallback=False, demo=use_demo, queuePosition=queue_position,
        )
        body: Dict[str, Any] = {"message": message, "queuePosition": queue_position}
        if synopsis:
            body["dataSynopsis"] = synopsis
        return CoachingOutcome(200, body, "Succeeded", record)
