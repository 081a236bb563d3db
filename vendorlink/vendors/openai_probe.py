"""
probe_openai_models - list models on an already-configured OpenAI vendor.

Simpler than detect_protocol: one protocol, two candidates (the base as
given and its /v1 sibling), and on failure the most actionable error wins.
"""

import logging
import time
from typing import Optional

import httpx

from vendorlink.config import ERROR_SNIPPET_CHARS, get_detect_timeout_ms
from vendorlink.vendors.candidates import extract_openai_models, parse_api_keys
from vendorlink.vendors.schema import OpenAIProbeResult

logger = logging.getLogger(__name__)


def normalize_openai_base_url(base_url: str) -> str:
    """
    Trim a pasted endpoint back to a base URL.

    "/chat/completions" is stripped before "/models", each at most once.
    """
    url = base_url.strip().rstrip("/")
    for suffix in ("/chat/completions", "/models"):
        if url.endswith(suffix):
            url = url[:-len(suffix)].rstrip("/")
    return url


def candidate_openai_bases(base_url: str) -> list[str]:
    """
    The user's base first, then its /v1 sibling.

    If the base already ends in /v1, the sibling is the root without it.
    """
    base = normalize_openai_base_url(base_url)
    if not base:
        return []

    if base.endswith("/v1"):
        candidates = [base, base[:-len("/v1")]]
    else:
        candidates = [base, f"{base}/v1"]

    unique: list[str] = []
    for candidate in candidates:
        if candidate.strip() and candidate not in unique:
            unique.append(candidate)
    return unique


async def probe_openai_models(
    base_url: str,
    api_key: str,
    timeout_ms: Optional[int] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OpenAIProbeResult:
    """
    Fetch the model list from an OpenAI-compatible vendor.

    Returns:
        OpenAIProbeResult. On success fixed_base_url is the candidate that
        answered. On failure it carries the best error: an auth failure
        (401/403) beats anything else, otherwise the first error wins.
    """
    keys = parse_api_keys(api_key)
    if not keys:
        return OpenAIProbeResult(success=False, error="API key is required")

    candidates = candidate_openai_bases(base_url)
    if not candidates:
        return OpenAIProbeResult(success=False, error="Base URL is required")

    timeout = (timeout_ms or get_detect_timeout_ms()) / 1000
    best: Optional[OpenAIProbeResult] = None

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for candidate in candidates:
            started = time.monotonic()
            try:
                response = await client.get(
                    f"{candidate}/models",
                    headers={"Authorization": f"Bearer {keys[0]}", "Accept": "application/json"},
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                if best is None:
                    best = _failure(f"Request failed: {e}", candidate, started)
                continue

            if response.is_success:
                try:
                    payload = response.json()
                except ValueError as e:
                    best = _failure(f"Failed to parse response JSON: {e}", candidate, started)
                    continue
                models = extract_openai_models(payload, name_fallback=False)
                if models:
                    latency_ms = int((time.monotonic() - started) * 1000)
                    logger.info(f"Found {len(models)} model(s) at {candidate}")
                    return OpenAIProbeResult(
                        success=True,
                        fixed_base_url=candidate,
                        models=models,
                        latency_ms=latency_ms,
                    )
                best = _failure("No models found in response", candidate, started)
                continue

            text = response.text
            if len(text) > ERROR_SNIPPET_CHARS:
                text = f"{text[:ERROR_SNIPPET_CHARS]}..."
            message = f"HTTP {response.status_code} from /models: {text}"
            is_auth = response.status_code in (401, 403)
            # A 404 on one candidate is expected (root vs /v1); keep trying.
            if is_auth or best is None:
                best = _failure(message, candidate, started)

    logger.info(f"Model probe failed for {base_url}: {best.error if best else 'Probe failed'}")
    return best or OpenAIProbeResult(success=False, error="Probe failed")


def _failure(error: str, candidate: str, started: float) -> OpenAIProbeResult:
    return OpenAIProbeResult(
        success=False,
        fixed_base_url=candidate,
        error=error,
        latency_ms=int((time.monotonic() - started) * 1000),
    )
