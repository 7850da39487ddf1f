"""
Language model access for extraction and duplicate arbitration.

Each model tier is a ``TextGenerator``; callers that need fallback hold an
ordered list of generators (primary first) and walk it themselves, so a
third tier or a test double is just another list entry.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import httpx

from trip_importer.config import settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*")


class LLMError(Exception):
    """A model call failed or returned nothing usable."""


class TextGenerator(Protocol):
    name: str

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
    ) -> str:
        ...


class ChatCompletionsGenerator:
    """One model tier on an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.name = model
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.llm_timeout
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.max_tokens = max_tokens
        self.transport = transport

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
    ) -> str:
        if not self.api_key:
            raise LLMError("LLM API key not configured")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise LLMError(f"{self.model} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            # Covers timeouts and connection failures
            raise LLMError(f"{self.model} request failed: {e!r}") from e
        except ValueError as e:
            raise LLMError(f"{self.model} returned a non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"{self.model} response had no message content") from e
        if not content or not content.strip():
            raise LLMError(f"{self.model} returned empty content")
        return content


def strip_code_fences(text: str) -> str:
    """Remove every markdown code fence marker (```json, ```) from the text."""
    return _FENCE_RE.sub("", text).strip()


def parse_json_response(text: str) -> Any:
    """Parse model output as JSON after stripping code fences.

    Models often wrap the JSON in prose; when the whole reply does not parse,
    the outermost ``{...}`` span is tried instead.

    Raises ``ValueError`` (``json.JSONDecodeError``) when no JSON can be found.
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except ValueError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start : end + 1])


def default_model_tiers() -> List[TextGenerator]:
    """Primary then fallback tier, as configured."""
    return [
        ChatCompletionsGenerator(settings.llm_primary_model),
        ChatCompletionsGenerator(settings.llm_fallback_model),
    ]
