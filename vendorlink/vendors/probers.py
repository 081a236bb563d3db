"""
Protocol probers - confirm whether a base URL speaks a given vendor protocol.

All three probers share one loop (ProtocolProber.probe): walk an ordered
endpoint list, send one request per endpoint with the protocol's auth style,
and let the protocol's classifier decide what the response proves. Only the
per-protocol data and the classifier differ.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from vendorlink.config import ERROR_SNIPPET_CHARS
from vendorlink.vendors.candidates import extract_gemini_models, extract_openai_models
from vendorlink.vendors.schema import (
    ProtocolDetectionResult, ProtocolType,
    check_key_suggestion, switch_platform_suggestion,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_PROBE_MODEL = "claude-3-haiku-20240307"

# Anthropic has no listing endpoint we can rely on; offer the known set.
ANTHROPIC_KNOWN_MODELS: list[str] = [
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
    "claude-3-5-sonnet-20241022",
]

# A classifier returns a result to stop with, an error message to remember,
# or None to move on silently.
Verdict = Union[ProtocolDetectionResult, str, None]


@dataclass(frozen=True)
class Endpoint:
    """One probe target relative to the candidate base URL."""

    path: str
    # Appended to the candidate to report the corrected base URL on success.
    fixed_suffix: Optional[str] = None

    def fixed_base_url(self, base_url: str) -> Optional[str]:
        return f"{base_url}{self.fixed_suffix}" if self.fixed_suffix else None


def _snippet(text: str) -> str:
    if len(text) > ERROR_SNIPPET_CHARS:
        return f"{text[:ERROR_SNIPPET_CHARS]}..."
    return text


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class ProtocolProber:
    """
    Shared probing loop.

    Subclasses set ``protocol``, ``endpoints`` and ``not_found_error`` and
    implement ``send`` (auth style) and ``classify`` (success predicate,
    confirmation and model extraction).
    """

    protocol: ProtocolType = ProtocolType.UNKNOWN
    endpoints: tuple[Endpoint, ...] = ()
    not_found_error: str = "Unknown protocol"
    # Whether the exhausted result reports the last endpoint error or the
    # fixed not_found_error.
    report_last_error: bool = False

    async def probe(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
    ) -> ProtocolDetectionResult:
        """
        Probe every endpoint of this protocol against one candidate base URL.

        Never raises for HTTP problems; the result says what was learned.
        """
        last_error: Optional[str] = None

        for endpoint in self.endpoints:
            try:
                response = await self.send(client, base_url, endpoint, api_key)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.debug(f"{self.protocol.value} probe {base_url}{endpoint.path} failed: {e}")
                last_error = f"Request failed: {endpoint.path}"
                continue

            logger.debug(
                f"{self.protocol.value} probe {base_url}{endpoint.path} -> HTTP {response.status_code}"
            )
            verdict = self.classify(base_url, endpoint, response)
            if isinstance(verdict, ProtocolDetectionResult):
                return verdict
            if verdict is not None:
                last_error = verdict

        error = (last_error if self.report_last_error else None) or self.not_found_error
        return ProtocolDetectionResult.failure(error)

    async def send(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        endpoint: Endpoint,
        api_key: str,
    ) -> httpx.Response:
        raise NotImplementedError

    def classify(self, base_url: str, endpoint: Endpoint, response: httpx.Response) -> Verdict:
        raise NotImplementedError


# ─────────────────────────────────────────────────────────────────────
# OPENAI
# ─────────────────────────────────────────────────────────────────────

class OpenAIProber(ProtocolProber):
    """GET /models with bearer auth; a non-empty model list confirms."""

    protocol = ProtocolType.OPENAI
    endpoints = (
        Endpoint("/models"),
        Endpoint("/v1/models", fixed_suffix="/v1"),
    )
    not_found_error = "Not an OpenAI-compatible API endpoint"
    report_last_error = True

    async def send(self, client, base_url, endpoint, api_key):
        return await client.get(
            f"{base_url}{endpoint.path}",
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
        )

    def classify(self, base_url, endpoint, response):
        if response.is_success:
            models = extract_openai_models(_json_or_none(response))
            if models:
                return ProtocolDetectionResult(
                    success=True,
                    protocol=ProtocolType.OPENAI,
                    confidence=95,
                    fixed_base_url=endpoint.fixed_base_url(base_url),
                    models=models,
                )
            # 2xx without models: maybe the wrong path on a catch-all gateway
            return "Response did not contain a model list"

        if response.status_code == 401:
            return ProtocolDetectionResult(
                success=False,
                protocol=ProtocolType.OPENAI,
                confidence=70,
                error="Invalid API key for OpenAI protocol",
                suggestion=check_key_suggestion("OpenAI-compatible endpoint"),
            )

        return f"HTTP {response.status_code} from {endpoint.path}: {_snippet(response.text)}"


# ─────────────────────────────────────────────────────────────────────
# GEMINI
# ─────────────────────────────────────────────────────────────────────

class GeminiProber(ProtocolProber):
    """GET models with ?key=; models/<id> names confirm."""

    protocol = ProtocolType.GEMINI
    endpoints = (
        Endpoint("/v1beta/models"),
        Endpoint("/v1/models"),
        Endpoint("/models"),
    )
    not_found_error = "Not a Gemini API endpoint"

    async def send(self, client, base_url, endpoint, api_key):
        return await client.get(
            f"{base_url}{endpoint.path}",
            params={"key": api_key},
            headers={"Accept": "application/json"},
        )

    def classify(self, base_url, endpoint, response):
        if response.is_success:
            models = extract_gemini_models(_json_or_none(response))
            if models:
                return ProtocolDetectionResult(
                    success=True,
                    protocol=ProtocolType.GEMINI,
                    confidence=95,
                    models=models,
                    suggestion=switch_platform_suggestion(ProtocolType.GEMINI),
                )

        # Google rejects bad keys with 400/403 and says so in the body.
        if response.status_code in (400, 403):
            text = response.text.lower()
            if "api key" in text or "apikey" in text:
                return ProtocolDetectionResult(
                    success=False,
                    protocol=ProtocolType.GEMINI,
                    confidence=80,
                    error="Invalid API key format for Gemini",
                    suggestion=check_key_suggestion("Gemini protocol"),
                )
        return None


# ─────────────────────────────────────────────────────────────────────
# ANTHROPIC
# ─────────────────────────────────────────────────────────────────────

def is_anthropic_response(payload) -> bool:
    """
    True for bodies only the Anthropic Messages API produces.

    Success: {"type": "message", "id": "msg_..."}
    Error:   {"type": "error", "error": {"type": "...", "message": "..."}}
    """
    if not isinstance(payload, dict):
        return False

    if payload.get("type") == "message":
        message_id = payload.get("id")
        return isinstance(message_id, str) and message_id.startswith("msg_")

    if payload.get("type") == "error":
        error = payload.get("error")
        return (
            isinstance(error, dict)
            and isinstance(error.get("type"), str)
            and isinstance(error.get("message"), str)
        )

    return False


class AnthropicProber(ProtocolProber):
    """POST a one-token message; the response envelope confirms."""

    protocol = ProtocolType.ANTHROPIC
    endpoints = (
        Endpoint("/v1/messages", fixed_suffix="/v1"),
        Endpoint("/messages"),
    )
    not_found_error = "Not an Anthropic API endpoint"

    async def send(self, client, base_url, endpoint, api_key):
        return await client.post(
            f"{base_url}{endpoint.path}",
            headers={
                "Content-Type": "application/json",
                "anthropic-version": ANTHROPIC_VERSION,
                "x-api-key": api_key,
            },
            json={
                "model": ANTHROPIC_PROBE_MODEL,
                "max_tokens": 1,
                "messages": [{"role": "user", "content": "hi"}],
            },
        )

    def classify(self, base_url, endpoint, response):
        if not is_anthropic_response(_json_or_none(response)):
            return None

        # A 400 is still the Messages API rejecting our request shape.
        if response.is_success or response.status_code == 400:
            return ProtocolDetectionResult(
                success=True,
                protocol=ProtocolType.ANTHROPIC,
                confidence=95 if response.is_success else 90,
                fixed_base_url=endpoint.fixed_base_url(base_url),
                models=list(ANTHROPIC_KNOWN_MODELS),
                suggestion=switch_platform_suggestion(ProtocolType.ANTHROPIC),
            )

        if response.status_code == 401:
            return ProtocolDetectionResult(
                success=False,
                protocol=ProtocolType.ANTHROPIC,
                confidence=70,
                error="Invalid API key for Anthropic protocol",
                suggestion=check_key_suggestion("Anthropic protocol"),
            )
        return None


PROBERS: dict[ProtocolType, ProtocolProber] = {
    ProtocolType.OPENAI: OpenAIProber(),
    ProtocolType.GEMINI: GeminiProber(),
    ProtocolType.ANTHROPIC: AnthropicProber(),
}


def get_prober(protocol: ProtocolType) -> Optional[ProtocolProber]:
    return PROBERS.get(protocol)
