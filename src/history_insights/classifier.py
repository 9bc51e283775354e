"""
HTTP clients for LLM-backed text classification.

Both clients take a batch of history items plus instructions and return
the model's raw text. Parsing that text is the caller's job (see
`extract_json`). Any network, quota or credential problem surfaces as
ClassifierUnavailableError so callers can fall back.
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Protocol

import httpx

from .config import InsightsConfig
from .errors import ClassifierUnavailableError, UnparseableClassifierResponseError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You analyze browsing history. Respond with a single JSON object only. "
    "Do not include explanations, markdown or any text outside the JSON."
)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class TopicClassifier(Protocol):
    """Anything that can classify history items with an LLM."""

    async def classify(self, items: list[dict[str, Any]], instructions: str) -> str:
        ...


def build_prompt(items: list[dict[str, Any]], instructions: str) -> str:
    """Combine instructions and items into one user prompt."""
    return (
        f"{instructions.strip()}\n\n"
        f"Browsing history items (JSON):\n{json.dumps(items, ensure_ascii=False)}\n\n"
        f"Return ONLY the JSON object."
    )


def extract_json(text: str | None) -> dict[str, Any]:
    """
    Extract a JSON object from a model response.

    Tries, in order: the whole text, the contents of a ``` code fence,
    and the span from the first "{" to the last "}".

    Raises:
        UnparseableClassifierResponseError: If no JSON object can be found
    """
    if not text or not text.strip():
        raise UnparseableClassifierResponseError("Classifier returned an empty response")

    candidates = [text.strip()]
    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise UnparseableClassifierResponseError(
        f"No JSON object found in classifier response ({len(text)} chars)"
    )


class HTTPClassifier(ABC):
    """Shared request/error handling for REST-based LLM providers."""

    provider = "http"

    def __init__(
        self,
        api_key: str | None,
        model: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def _post(self, url: str, payload: dict, headers: dict | None = None) -> dict:
        """POST a JSON payload and return the decoded response body."""
        if not self.api_key:
            raise ClassifierUnavailableError(f"{self.provider} API key is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, headers=headers or {}, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                message = f"{self.provider} quota or rate limit exceeded"
            else:
                message = f"{self.provider} request failed with HTTP {status}"
            raise ClassifierUnavailableError(message, status_code=status) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ClassifierUnavailableError(f"{self.provider} request failed: {e}") from e
        except ValueError as e:
            # Body was not JSON
            raise UnparseableClassifierResponseError(
                f"{self.provider} returned a non-JSON body"
            ) from e

    @abstractmethod
    async def classify(self, items: list[dict[str, Any]], instructions: str) -> str:
        """Send items to the provider and return the raw model text."""


class OpenAIClassifier(HTTPClassifier):
    """Chat Completions client for OpenAI-compatible APIs."""

    provider = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(api_key, model, timeout, transport)
        self.base_url = base_url.rstrip("/")

    async def classify(self, items: list[dict[str, Any]], instructions: str) -> str:
        data = await self._post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            payload={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(items, instructions)},
                ],
                "temperature": 0.2,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise UnparseableClassifierResponseError("OpenAI response has no message content") from None

        logger.debug(f"OpenAI classifier returned {len(content or '')} chars")
        return content or ""


class GeminiClassifier(HTTPClassifier):
    """generateContent client for Google Gemini."""

    provider = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(api_key, model, timeout, transport)

    async def classify(self, items: list[dict[str, Any]], instructions: str) -> str:
        data = await self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            payload={
                "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
                "contents": [
                    {"role": "user", "parts": [{"text": build_prompt(items, instructions)}]},
                ],
                "generationConfig": {"temperature": 0.2},
            },
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise UnparseableClassifierResponseError("Gemini response has no candidates") from None

        content = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        logger.debug(f"Gemini classifier returned {len(content)} chars")
        return content


def create_classifier(config: InsightsConfig) -> TopicClassifier | None:
    """Build the classifier selected in config, or None when disabled."""
    if config.classifier_provider == "openai":
        return OpenAIClassifier(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            timeout=config.classifier_timeout_seconds,
        )
    if config.classifier_provider == "gemini":
        return GeminiClassifier(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            timeout=config.classifier_timeout_seconds,
        )
    return None
