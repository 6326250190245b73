"""LLM client: HTTP connection to an OpenAI-compatible chat-completion API.

The game master injects an LLM object matching the protocol:

    async def complete(self, stage: str, messages: list[dict]) -> str: ...
    def stream(self, stage: str, messages: list[dict]) -> AsyncIterator[str]: ...

`stage` identifies which agent is calling ("selection" or "narrator"). The
implementation may use it for logging; the simplest implementation ignores it.
`messages` is the chat payload: [{"role": ..., "content": ...}, ...].

Two implementations are provided:

    HttpLLM     real HTTP client for /chat/completions, blocking or streamed
                (server-sent "data:" lines).
    EchoLLM     answers with the last user message. Useful for smoke-testing
                the wiring without an API key.

Tests use StubLLM (defined in conftest.py) instead.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match these signatures
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def complete(self, stage: str, messages: list[dict]) -> str: ...

    def stream(self, stage: str, messages: list[dict]) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

class HttpLLM:
    """Async HTTP client for OpenAI-compatible chat completions.

      POST {base_url}/chat/completions
        {"model", "messages", "temperature", "max_tokens"[, "stream": true]}
      Response: {"choices": [{"message": {"content": "..."}}]}
      Streamed: "data: {"choices": [{"delta": {"content": "..."}}]}" lines,
                terminated by "data: [DONE]".

    Args:
        base_url:    API root, e.g. "https://api.openai.com/v1".
        api_key:     Bearer token. Calls fail with LLMError when empty.
        model:       Model identifier.
        temperature: Sampling temperature. Defaults to 0.8.
        max_tokens:  Completion cap. Defaults to 1000.
        timeout:     HTTP timeout in seconds. Defaults to 120.
        transport:   Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "gpt-4.1",
        temperature: float = 0.8,
        max_tokens: int = 1000,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise LLMError("OpenAI API key is not configured")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_request(self, messages: list[dict], stream: bool = False) -> tuple[str, dict]:
        """Return (url, body) for a chat completion."""
        url = f"{self._base_url}/chat/completions"
        body: dict = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if stream:
            body["stream"] = True
        return url, body

    def _parse_response(self, data: dict) -> str:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0].get("message"), dict):
            raise LLMError("Unexpected response format from chat completion backend")
        return choices[0]["message"].get("content") or ""

    async def complete(self, stage: str, messages: list[dict]) -> str:
        headers = self._headers()
        url, body = self._build_request(messages)
        logger.debug("llm call stage=%s url=%s messages=%d", stage, url, len(messages))

        try:
            async with self._client() as client:
                resp = await client.post(url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON response") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text

    async def stream(self, stage: str, messages: list[dict]) -> AsyncIterator[str]:
        """Yield content deltas in upstream order.

        The upstream response is closed when the generator is closed, so a
        consumer that stops early releases the connection.
        """
        headers = self._headers()
        url, body = self._build_request(messages, stream=True)
        logger.debug("llm stream stage=%s url=%s messages=%d", stage, url, len(messages))

        total = 0
        try:
            async with self._client() as client:
                async with client.stream("POST", url, json=body, headers=headers) as resp:
                    if resp.is_error:
                        await resp.aread()
                        raise LLMError(f"LLM backend returned HTTP {resp.status_code}")
                    async for line in resp.aiter_lines():
                        delta = _parse_stream_line(line)
                        if delta is None:
                            continue
                        if delta is _DONE:
                            break
                        total += len(delta)
                        yield delta
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM stream interrupted: {e}") from e
        logger.debug("llm stream done stage=%s len=%d", stage, total)


_DONE = object()


def _parse_stream_line(line: str):
    """Decode one SSE line. Returns the delta text, _DONE, or None to skip."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if payload == "[DONE]":
        return _DONE
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream line: %.80s", payload)
        return None
    choices = data.get("choices") or []
    if not choices:
        return None
    return (choices[0].get("delta") or {}).get("content") or None


# ---------------------------------------------------------------------------
# EchoLLM: repeats the player; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the last user message as-is. No network calls.

    Lets you verify that routing, detection and reconciliation work
    end-to-end without a running model.
    """

    configured = True

    async def complete(self, stage: str, messages: list[dict]) -> str:
        logger.debug("EchoLLM stage=%s messages=%d", stage, len(messages))
        return _last_user_content(messages)

    async def stream(self, stage: str, messages: list[dict]) -> AsyncIterator[str]:
        for word in _last_user_content(messages).split(" "):
            yield word + " "


def _last_user_content(messages: list[dict]) -> str:
    for msg in reversed(messages):
        if msg.get("role") == "user":
            return msg.get("content", "")
    return ""


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
