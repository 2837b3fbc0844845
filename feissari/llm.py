"""LLM client: HTTP connection to a text-generation backend.

The oracle adapter is handed an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies what is being generated (e.g. "character_reply"). The
implementation may use it for logging or routing; the simplest
implementation ignores it.

Two implementations are provided:

    HttpLLM   - real HTTP client, supports Gemini, KoboldCpp and
                OpenAI-compatible backends. Selected by provider_format.
    EchoLLM   - returns the prompt back unchanged. Useful for smoke-testing
                the server wiring without a running model.

The app factory constructs an HttpLLM from config and hands it to the oracle.
Tests use the scripted StubLLM fixture instead.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["gemini", "koboldcpp", "openai"]

GEMINI_DEFAULT_URL = "https://generativelanguage.googleapis.com"


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "gemini"     POST /v1beta/models/{model}:generateContent
                   {"contents": [{"parts": [{"text": ...}]}]}
                   Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
      "koboldcpp"  POST /api/v1/generate  {"prompt": ...}
                   Response: {"results": [{"text": "..."}]}
      "openai"     POST /v1/completions   {"model": ..., "prompt": ...}
                   Response: {"choices": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         API key, or empty string if not required. Sent as a
                         Bearer token, or as x-goog-api-key for gemini.
        provider_format: Wire format to use. Defaults to "gemini".
        model:           Model identifier, used by the gemini and openai formats.
        timeout:         HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "gemini",
        model: str = "gemini-2.5-flash",
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            if self._format == "gemini":
                headers["x-goog-api-key"] = self._api_key
            else:
                headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "gemini":
            url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
            return url, {"contents": [{"parts": [{"text": prompt}]}]}

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt}

    def _parse_response(self, data: dict) -> str:
        """Extract the generated text from the response body."""
        if self._format == "gemini":
            try:
                parts = data["candidates"][0]["content"]["parts"]
                return "".join(p["text"] for p in parts if "text" in p)
            except (KeyError, IndexError, TypeError) as e:
                raise LLMError("Unexpected response format from Gemini backend") from e

        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM: returns the prompt unchanged (LLM_PROVIDER_FORMAT=echo)
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    Selected with llm_provider_format "echo". Runs the server without a
    model: the output is not valid reply JSON, so every turn gets the
    oracle's fallback reply and moves on to the next character.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
