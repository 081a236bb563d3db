"""Shared test fixtures for vendorlink tests."""

import json

import pytest

from vendorlink.config import ProviderConfig
from vendorlink.engine import WorkspaceSession


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_BASE_URL = "https://llm.example.com/v1"
MOCK_CHAT_URL = f"{MOCK_BASE_URL}/chat/completions"
MOCK_API_KEY = "sk-test-0123456789abcdef"
MOCK_MODEL = "gpt-4o-mini"
MOCK_WORKSPACE = "ws-test"

MOCK_PROVIDER = ProviderConfig(
    id="provider-1",
    name="Example",
    base_url=f"{MOCK_BASE_URL}/",
    api_key=MOCK_API_KEY,
    default_model=MOCK_MODEL,
    is_active=True,
)


def sse_frame(content: str) -> str:
    """One OpenAI-style streaming chunk carrying ``content``."""
    chunk = {"choices": [{"index": 0, "delta": {"content": content}, "finish_reason": None}]}
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n"


def sse_stream(*contents: str, done: bool = True) -> bytes:
    """Full SSE body: one frame per content, then [DONE]."""
    body = "".join(sse_frame(c) for c in contents)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def providers():
    """Mutable provider list, returned by provider_source on every call."""
    return [MOCK_PROVIDER.model_copy()]


@pytest.fixture
def provider_source(providers):
    return lambda: providers


@pytest.fixture
def session(provider_source):
    """WorkspaceSession using the real httpx transport (mock with respx)."""
    return WorkspaceSession(MOCK_WORKSPACE, provider_source, timeout_seconds=5)
