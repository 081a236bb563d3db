"""
Configuration constants and Pydantic models for vendorlink.
"""

import os
from typing import Callable, Literal, Optional

from pydantic import BaseModel

from vendorlink.errors import ConfigurationError


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS - Overridable via environment
# ─────────────────────────────────────────────────────────────────────

DEFAULT_DETECT_TIMEOUT_MS: int = 10000
DEFAULT_CHAT_TIMEOUT_SECONDS: int = 300  # 5 minutes
DEFAULT_EVENT_BUS_CAPACITY: int = 1024


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS - Not exposed to callers
# ─────────────────────────────────────────────────────────────────────

ERROR_BODY_LIMIT_BYTES: int = 4096
ERROR_SNIPPET_CHARS: int = 400
SSE_DATA_PREFIX: str = "data:"
SSE_DONE_TOKEN: str = "[DONE]"
INTERRUPTED_CODE: str = "INTERRUPTED"
ABORTED_CODE: str = "ABORTED"


def _int_from_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_detect_timeout_ms() -> int:
    """
    Get protocol detection timeout in milliseconds.

    Set VENDORLINK_DETECT_TIMEOUT_MS in .env (default: 10000).
    """
    return _int_from_env("VENDORLINK_DETECT_TIMEOUT_MS", DEFAULT_DETECT_TIMEOUT_MS)


def get_chat_timeout_seconds() -> int:
    """
    Get streaming chat request timeout in seconds.

    Set VENDORLINK_CHAT_TIMEOUT_SECONDS in .env (default: 300).
    """
    return _int_from_env("VENDORLINK_CHAT_TIMEOUT_SECONDS", DEFAULT_CHAT_TIMEOUT_SECONDS)


def get_event_bus_capacity() -> int:
    """
    Get per-subscriber event buffer size.

    Set VENDORLINK_EVENT_BUS_CAPACITY in .env (default: 1024).
    Non-positive values fall back to the default.
    """
    capacity = _int_from_env("VENDORLINK_EVENT_BUS_CAPACITY", DEFAULT_EVENT_BUS_CAPACITY)
    return capacity if capacity > 0 else DEFAULT_EVENT_BUS_CAPACITY


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class Message(BaseModel):
    """A single message in a conversation."""
    role: Literal["system", "user", "assistant"]
    content: str

    def to_wire(self) -> dict:
        """Convert to OpenAI API message format."""
        return {"role": self.role, "content": self.content}


class SendMessageParams(BaseModel):
    """Input for one turn of a workspace session."""
    text: str
    session_id: Optional[str] = None
    continue_session: bool = False
    model: Optional[str] = None  # Overrides the provider default when non-blank


class ProviderConfig(BaseModel):
    """An OpenAI-compatible provider as stored by the settings collaborator."""
    id: str
    name: str = ""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    default_model: Optional[str] = None
    is_active: bool = False


class VendorConfig(BaseModel):
    """Resolved, complete configuration of the active provider."""
    base_url: str
    api_key: str
    default_model: str


ProviderSource = Callable[[], list[ProviderConfig]]


def resolve_active_provider(providers: list[ProviderConfig]) -> VendorConfig:
    """
    Pick the active provider and check it is complete.

    Base URL is trimmed and loses trailing slashes; key and default model
    are trimmed.

    Raises:
        ConfigurationError: If no provider is active or the active one lacks
            a base URL, API key or default model.
    """
    active = next((p for p in providers if p.is_active), None)
    if active is None:
        raise ConfigurationError(
            "No OpenAI Compatible provider is enabled. "
            "Enable one in Settings > Vendor Management."
        )

    base_url = (active.base_url or "").strip().rstrip("/")
    api_key = (active.api_key or "").strip()
    default_model = (active.default_model or "").strip()

    if not base_url or not api_key or not default_model:
        raise ConfigurationError(
            "OpenAI Compatible provider is incomplete "
            "(baseUrl/apiKey/defaultModel required)."
        )

    return VendorConfig(base_url=base_url, api_key=api_key, default_model=default_model)


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def load_providers_from_env() -> list[ProviderConfig]:
    """
    Load the provider list from environment variables.

    Reads VENDORLINK_BASE_URL, VENDORLINK_API_KEY and VENDORLINK_DEFAULT_MODEL.
    Returns a single active provider when any of them is set, otherwise an
    empty list (which resolve_active_provider rejects).
    """
    base_url = os.environ.get("VENDORLINK_BASE_URL")
    api_key = os.environ.get("VENDORLINK_API_KEY")
    default_model = os.environ.get("VENDORLINK_DEFAULT_MODEL")
    if not any((base_url, api_key, default_model)):
        return []
    return [
        ProviderConfig(
            id="env",
            name="Environment",
            base_url=base_url,
            api_key=api_key,
            default_model=default_model,
            is_active=True,
        )
    ]
