"""
detect_protocol - classify an unknown base URL + key pair.

Tries protocols in heuristic order against every URL candidate, one request
at a time, and returns the first confirmed classification. Never raises for
bad input or network failures: the caller always gets something to render.
"""

import logging
import time
from typing import Optional, Union

import httpx

from vendorlink.config import get_detect_timeout_ms
from vendorlink.vendors.candidates import (
    build_base_url_candidates, guess_protocol_from_key, guess_protocol_from_url,
    parse_api_keys,
)
from vendorlink.vendors.probers import get_prober
from vendorlink.vendors.schema import (
    ProtocolDetectionResult, ProtocolType, switch_platform_suggestion,
)

logger = logging.getLogger(__name__)

FALLBACK_ORDER = (ProtocolType.GEMINI, ProtocolType.OPENAI, ProtocolType.ANTHROPIC)


def protocol_test_order(
    first_candidate: str,
    api_key: str,
    preferred_protocol: Optional[ProtocolType] = None,
) -> list[ProtocolType]:
    """
    Order in which protocols are probed.

    Explicit preference first, then the URL guess, then the key guess, then
    everything not yet listed in FALLBACK_ORDER.
    """
    order: list[ProtocolType] = []
    guesses = [
        preferred_protocol,
        guess_protocol_from_url(first_candidate),
        guess_protocol_from_key(api_key),
        *FALLBACK_ORDER,
    ]
    for protocol in guesses:
        if protocol and protocol != ProtocolType.UNKNOWN and protocol not in order:
            order.append(protocol)
    return order


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def detect_protocol(
    base_url: str,
    api_key_string: str,
    timeout_ms: Optional[int] = None,
    preferred_protocol: Optional[Union[ProtocolType, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProtocolDetectionResult:
    """
    Detect which vendor protocol an endpoint speaks.

    Args:
        base_url: Whatever the user typed; scheme and path are optional
        api_key_string: One or more keys separated by commas/newlines
            (only the first is used)
        timeout_ms: Per-request timeout (env default if omitted)
        preferred_protocol: Protocol to try first, e.g. the platform the
            user selected
        transport: httpx transport override, used by tests

    Returns:
        ProtocolDetectionResult. On total failure: protocol=unknown,
        confidence=0, the first error seen, no suggestion.
    """
    candidates = build_base_url_candidates(base_url)
    if not candidates:
        return ProtocolDetectionResult.failure("Base URL is required")

    api_keys = parse_api_keys(api_key_string)
    if not api_keys:
        return ProtocolDetectionResult.failure("API key is required")
    api_key = api_keys[0]

    # PROBERS is keyed by ProtocolType; accept plain strings such as "openai".
    if preferred_protocol:
        try:
            preferred_protocol = ProtocolType(preferred_protocol)
        except ValueError:
            logger.warning(f"Ignoring unknown preferred protocol: {preferred_protocol!r}")
            preferred_protocol = None

    order = protocol_test_order(candidates[0], api_key, preferred_protocol)
    logger.info(f"Detecting protocol for {candidates[0]} (order: {[p.value for p in order]})")

    timeout = (timeout_ms or get_detect_timeout_ms()) / 1000
    started = time.monotonic()
    first_error: Optional[str] = None

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for protocol in order:
            prober = get_prober(protocol)
            for candidate in candidates:
                result = await prober.probe(client, candidate, api_key)

                if result.success:
                    result.latency_ms = _elapsed_ms(started)
                    if result.suggestion is None:
                        result.suggestion = switch_platform_suggestion(result.protocol)
                    logger.info(
                        f"Detected {result.protocol.value} at {candidate} "
                        f"(confidence {result.confidence}, {result.latency_ms}ms)"
                    )
                    return result

                if first_error is None:
                    first_error = result.error

    logger.info(f"Protocol detection failed for {candidates[0]}: {first_error}")
    return ProtocolDetectionResult.failure(
        first_error or "Detection failed", latency_ms=_elapsed_ms(started),
    )
