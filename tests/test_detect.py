"""Tests for detect_protocol: probe order, first confirmed result, failure shape."""

import httpx
import pytest

from vendorlink.vendors.detect import detect_protocol, protocol_test_order
from vendorlink.vendors.schema import ProtocolType, SuggestionKind

ANTHROPIC_ERROR = {"type": "error", "error": {"type": "invalid_request_error", "message": "bad"}}


def recording_transport(routes: dict):
    """MockTransport keyed by (method, host, path); unknown targets get 404."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        key = (request.method, request.url.host, request.url.path)
        return routes.get(key) or httpx.Response(404, text="not found")

    return httpx.MockTransport(handler), seen


# ─────────────────────────────────────────────────────────────────────
# PROBE ORDER
# ─────────────────────────────────────────────────────────────────────


class TestProtocolOrder:
    def test_fallback_order(self):
        assert protocol_test_order("https://llm.corp", "key") == [
            ProtocolType.GEMINI, ProtocolType.OPENAI, ProtocolType.ANTHROPIC,
        ]

    def test_key_guess_first(self):
        assert protocol_test_order("https://llm.corp", "sk-ant-abc")[0] == ProtocolType.ANTHROPIC

    def test_url_guess_beats_key_guess(self):
        order = protocol_test_order("https://api.openai.com", "sk-ant-abc")
        assert order[:2] == [ProtocolType.OPENAI, ProtocolType.ANTHROPIC]

    def test_preference_beats_everything(self):
        order = protocol_test_order("https://api.openai.com", "sk-ant-abc", ProtocolType.GEMINI)
        assert order == [ProtocolType.GEMINI, ProtocolType.OPENAI, ProtocolType.ANTHROPIC]

    def test_unknown_preference_ignored(self):
        order = protocol_test_order("https://llm.corp", "key", ProtocolType.UNKNOWN)
        assert ProtocolType.UNKNOWN not in order
        assert len(order) == 3


# ─────────────────────────────────────────────────────────────────────
# DETECTION
# ─────────────────────────────────────────────────────────────────────


class TestDetectProtocol:
    @pytest.mark.asyncio
    async def test_anthropic_key_probes_anthropic_first(self):
        transport, seen = recording_transport({
            ("POST", "llm.corp", "/v1/messages"): httpx.Response(400, json=ANTHROPIC_ERROR),
        })

        result = await detect_protocol("llm.corp", "sk-ant-abc", transport=transport)

        assert result.success is True
        assert result.protocol == ProtocolType.ANTHROPIC
        assert result.fixed_base_url == "https://llm.corp/v1"
        assert result.suggestion.kind == SuggestionKind.SWITCH_PLATFORM
        assert result.latency_ms is not None
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://llm.corp/v1/messages"

    @pytest.mark.asyncio
    async def test_openai_success_has_no_suggestion(self):
        transport, _ = recording_transport({
            ("GET", "api.openai.com", "/v1/models"): httpx.Response(200, json={"data": [{"id": "gpt-4o"}]}),
        })

        result = await detect_protocol(
            "https://api.openai.com/v1/chat/completions", "sk-proj-0123456789abcdef",
            transport=transport,
        )

        assert result.success is True
        assert result.protocol == ProtocolType.OPENAI
        assert result.models == ["gpt-4o"]
        assert result.suggestion is None
        assert result.to_dict()["fixedBaseUrl"] == "https://api.openai.com/v1"

    @pytest.mark.asyncio
    async def test_stops_at_first_confirmed(self):
        transport, seen = recording_transport({
            ("GET", "llm.corp", "/v1beta/models"): httpx.Response(200, json={"models": [{"name": "models/g"}]}),
            ("GET", "llm.corp", "/models"): httpx.Response(200, json={"data": [{"id": "m"}]}),
        })

        result = await detect_protocol("https://llm.corp", "plain-key", transport=transport)

        assert result.protocol == ProtocolType.GEMINI
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_total_failure_reports_first_error(self):
        transport, seen = recording_transport({})

        result = await detect_protocol("https://llm.corp", "plain-key", transport=transport)

        assert result.success is False
        assert result.protocol == ProtocolType.UNKNOWN
        assert result.confidence == 0
        assert result.error == "Not a Gemini API endpoint"
        assert result.suggestion is None
        assert result.latency_ms is not None
        # Gemini 3 + OpenAI 2 + Anthropic 2, one candidate
        assert len(seen) == 7

    @pytest.mark.asyncio
    async def test_preferred_protocol_probed_first(self):
        transport, seen = recording_transport({})

        await detect_protocol(
            "https://llm.corp", "plain-key",
            preferred_protocol=ProtocolType.OPENAI, transport=transport,
        )

        assert seen[0].url.path == "/models"
        assert "Authorization" in seen[0].headers

    @pytest.mark.asyncio
    async def test_preferred_protocol_as_plain_string(self):
        transport, seen = recording_transport({})

        await detect_protocol(
            "https://llm.corp", "plain-key",
            preferred_protocol="openai", transport=transport,
        )

        assert seen[0].url.path == "/models"
        assert "Authorization" in seen[0].headers

    @pytest.mark.asyncio
    async def test_unknown_preferred_protocol_falls_back(self):
        transport, seen = recording_transport({})

        result = await detect_protocol(
            "https://llm.corp", "plain-key",
            preferred_protocol="bogus", transport=transport,
        )

        assert result.success is False
        assert seen[0].url.path == "/v1beta/models"

    @pytest.mark.asyncio
    async def test_malformed_url_is_a_failed_result(self):
        transport, seen = recording_transport({})

        result = await detect_protocol(
            "https://api.example.com:abc", "sk-test",
            preferred_protocol=ProtocolType.OPENAI, transport=transport,
        )

        assert result.success is False
        assert result.protocol == ProtocolType.UNKNOWN
        assert result.error.startswith("Request failed")
        assert seen == []

    @pytest.mark.asyncio
    async def test_every_candidate_tried_per_protocol(self):
        transport, seen = recording_transport({})

        await detect_protocol(
            "llm.corp/v1/chat/completions", "sk-ant-abc",
            preferred_protocol=ProtocolType.ANTHROPIC, transport=transport,
        )

        anthropic_urls = [str(r.url) for r in seen[:8]]
        assert anthropic_urls == [
            "https://llm.corp/v1/chat/completions/v1/messages",
            "https://llm.corp/v1/chat/completions/messages",
            "https://llm.corp/v1/messages",
            "https://llm.corp/messages",
            "http://llm.corp/v1/chat/completions/v1/messages",
            "http://llm.corp/v1/chat/completions/messages",
            "http://llm.corp/v1/messages",
            "http://llm.corp/messages",
        ]

    @pytest.mark.asyncio
    async def test_missing_base_url(self):
        result = await detect_protocol("  ", "key")
        assert result.success is False
        assert result.error == "Base URL is required"

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        result = await detect_protocol("https://llm.corp", " ,\n")
        assert result.success is False
        assert result.error == "API key is required"

    @pytest.mark.asyncio
    async def test_only_first_key_used(self):
        transport, seen = recording_transport({})

        await detect_protocol(
            "https://llm.corp", "first-key,second-key",
            preferred_protocol=ProtocolType.OPENAI, transport=transport,
        )

        assert seen[0].headers["Authorization"] == "Bearer first-key"
