from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProtocolType(str, Enum):
    """Vendor wire protocols the detector can recognise."""
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    UNKNOWN = "unknown"


class SuggestionKind(str, Enum):
    SWITCH_PLATFORM = "switch_platform"
    FIX_URL = "fix_url"
    CHECK_KEY = "check_key"
    NONE = "none"


class _WireModel(BaseModel):
    """Serialises with camelCase keys and without unset optionals."""
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ProtocolSuggestion(_WireModel):
    """
    Remediation hint shown next to a detection result.

    i18n_key/i18n_params let a UI localise the message; ``message`` is the
    English fallback.
    """
    kind: SuggestionKind = Field(alias="type")
    message: str
    suggested_platform: Optional[str] = Field(default=None, alias="suggestedPlatform")
    i18n_key: Optional[str] = Field(default=None, alias="i18nKey")
    i18n_params: Optional[dict[str, str]] = Field(default=None, alias="i18nParams")


class ProtocolDetectionResult(_WireModel):
    """
    Classification of a base URL + key pair.

    ``success`` means the protocol was confirmed AND usable. A confirmed
    protocol with a rejected key comes back with success=False, the protocol
    set, partial confidence and a check_key suggestion.
    """
    success: bool
    protocol: ProtocolType
    confidence: int = Field(ge=0, le=100)
    error: Optional[str] = None
    fixed_base_url: Optional[str] = Field(default=None, alias="fixedBaseUrl")
    models: Optional[list[str]] = None
    latency_ms: Optional[int] = Field(default=None, alias="latencyMs")
    suggestion: Optional[ProtocolSuggestion] = None

    @classmethod
    def failure(cls, error: str, latency_ms: Optional[int] = None) -> "ProtocolDetectionResult":
        return cls(
            success=False,
            protocol=ProtocolType.UNKNOWN,
            confidence=0,
            error=error,
            latency_ms=latency_ms,
        )


class OpenAIProbeResult(_WireModel):
    """Outcome of listing models on an already-configured OpenAI-style vendor."""
    success: bool
    fixed_base_url: Optional[str] = Field(default=None, alias="fixedBaseUrl")
    models: Optional[list[str]] = None
    error: Optional[str] = None
    latency_ms: Optional[int] = Field(default=None, alias="latencyMs")


# ─────────────────────────────────────────────────────────────────────
# CANNED SUGGESTIONS
# ─────────────────────────────────────────────────────────────────────

def check_key_suggestion(protocol_label: str) -> ProtocolSuggestion:
    return ProtocolSuggestion(
        kind=SuggestionKind.CHECK_KEY,
        message=f"Detected {protocol_label} but the API key seems invalid.",
        i18n_key="settings.vendor.openaiDialog.suggestCheckKey",
    )


def switch_platform_suggestion(protocol: ProtocolType) -> Optional[ProtocolSuggestion]:
    """Suggestion for endpoints that speak a non-OpenAI protocol; None for OpenAI."""
    if protocol == ProtocolType.GEMINI:
        return ProtocolSuggestion(
            kind=SuggestionKind.SWITCH_PLATFORM,
            message="Detected Gemini protocol.",
            suggested_platform="gemini",
            i18n_key="settings.vendor.openaiDialog.suggestGemini",
        )
    if protocol == ProtocolType.ANTHROPIC:
        return ProtocolSuggestion(
            kind=SuggestionKind.SWITCH_PLATFORM,
            message="Detected Anthropic/Claude protocol.",
            suggested_platform="claude",
            i18n_key="settings.vendor.openaiDialog.suggestClaude",
        )
    return None
