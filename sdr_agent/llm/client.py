"""
sdr_agent/llm/client.py — HTTP client for the OpenAI-compatible chat-completion API.

    client = LLMClient()
    reply = client.chat([{"role": "user", "content": "Hi"}], tools=catalog.to_provider_format())
    reply.content, reply.tool_calls

Retry policy (per call, settings.llm_max_attempts attempts in total):
  - 429         → wait 2s × attempt, retry
  - 5xx         → wait 1s × attempt, retry
  - other 4xx   → raise immediately
  - timeout / connection error → raise immediately (no status code)
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests
from pydantic import BaseModel, Field, ValidationError
from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt

from sdr_agent.config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_WAIT_SECONDS = 2.0
SERVER_ERROR_WAIT_SECONDS = 1.0


# ── Errors ────────────────────────────────────────────────────────────────────

class ProviderError(Exception):
    """Any failure talking to the LLM provider."""


class ProviderHTTPError(ProviderError):
    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Provider returned HTTP {status_code}: {detail[:200]}")


class ProviderTimeoutError(ProviderError):
    pass


class ProviderResponseError(ProviderError):
    """The provider answered 2xx but the body is not a chat completion."""


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderHTTPError) and (
        exc.status_code == 429 or exc.status_code >= 500
    )


def retry_wait_seconds(retry_state) -> float:
    """tenacity wait callback: linear backoff, longer for rate limits."""
    exc = retry_state.outcome.exception()
    attempt = retry_state.attempt_number
    if isinstance(exc, ProviderHTTPError) and exc.status_code == 429:
        return RATE_LIMIT_WAIT_SECONDS * attempt
    return SERVER_ERROR_WAIT_SECONDS * attempt


# ── Response payload ──────────────────────────────────────────────────────────

class _FunctionPayload(BaseModel):
    name: str
    arguments: Any = "{}"


class _ToolCallPayload(BaseModel):
    id: str
    type: str = "function"
    function: _FunctionPayload


class _MessagePayload(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[list[_ToolCallPayload]] = None


class _ChoicePayload(BaseModel):
    message: _MessagePayload


class _CompletionPayload(BaseModel):
    choices: list[_ChoicePayload] = Field(min_length=1)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str              # JSON text, exactly as the provider sent it

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ProviderMessage:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_turn(self) -> dict:
        """Assistant conversation turn in provider wire format."""
        turn: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            turn["tool_calls"] = [c.to_dict() for c in self.tool_calls]
        return turn


def _to_provider_message(data: Any) -> ProviderMessage:
    try:
        payload = _CompletionPayload.model_validate(data)
    except ValidationError as e:
        raise ProviderResponseError(f"Unexpected completion payload: {e}") from e

    message = payload.choices[0].message
    tool_calls = []
    for call in message.tool_calls or []:
        arguments = call.function.arguments
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        tool_calls.append(ToolCall(id=call.id, name=call.function.name, arguments=arguments))

    return ProviderMessage(content=message.content or "", tool_calls=tool_calls)


# ── Client ────────────────────────────────────────────────────────────────────

class LLMClient:
    """
    Thin retrying wrapper around POST {base_url}/chat/completions.

    Every argument defaults to the matching settings field; tests pass a fake
    `session` and a recording `sleep` to run the retry policy without waiting.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_attempts = max_attempts or settings.llm_max_attempts
        self._sleep = sleep

        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key or settings.llm_api_key}",
            "Content-Type": "application/json",
        })

    def chat(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderMessage:
        """
        Send one chat-completion request (with retries).

        Args:
            messages:    Conversation turns in provider format, system prompt included.
            tools:       Tool definitions in provider format; omitted when empty.
            temperature: Overrides the client default for this call.
            max_tokens:  Overrides the client default for this call.

        Returns:
            ProviderMessage with the assistant text and any structured tool calls.

        Raises:
            ProviderHTTPError, ProviderTimeoutError, ProviderResponseError.
        """
        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if tools:
            body["tools"] = tools

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=retry_wait_seconds,
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        data = retrying(self._post, body)

        reply = _to_provider_message(data)
        logger.debug(
            "Provider reply: %d chars, %d tool call(s)", len(reply.content), len(reply.tool_calls)
        )
        return reply

    def complete(self, messages: list[dict], temperature: Optional[float] = None) -> str:
        """Plain completion without tools; returns the assistant text."""
        return self.chat(messages, temperature=temperature).content

    def _post(self, body: dict) -> Any:
        url = f"{self.base_url}/chat/completions"
        try:
            response = self._session.post(url, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"Provider did not answer within {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(f"Could not reach provider: {e}") from e

        if response.status_code >= 400:
            raise ProviderHTTPError(response.status_code, response.text or "")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderResponseError("Provider response is not JSON") from e
