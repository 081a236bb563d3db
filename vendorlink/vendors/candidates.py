"""
URL candidate building, API key parsing and protocol heuristics.

Users paste whatever they copied from a vendor dashboard: a bare host, a root
with /v1, or a full endpoint such as .../v1/chat/completions. These helpers
turn that into an ordered list of base URLs worth probing.
"""

from typing import Optional

from vendorlink.vendors.schema import ProtocolType


# Common endpoint paths people paste by accident, grouped by vendor.
API_PATH_SUFFIXES: list[str] = [
    # Gemini
    "/v1beta/models",
    "/v1/models",
    "/models",
    # OpenAI
    "/v1/chat/completions",
    "/chat/completions",
    "/v1/completions",
    "/completions",
    "/v1/embeddings",
    "/embeddings",
    # Anthropic
    "/v1/messages",
    "/messages",
]

# Host fragments that identify a vendor. Checked Anthropic, then Gemini, then
# OpenAI: the OpenAI list holds generic hosts (localhost) that would
# otherwise shadow the specific ones.
ANTHROPIC_HOST_PATTERNS = ["api.anthropic.com", "claude.ai"]
GEMINI_HOST_PATTERNS = [
    "generativelanguage.googleapis.com",
    "aiplatform.googleapis.com",
    "aistudio.google.com",
]
OPENAI_HOST_PATTERNS = [
    "api.openai.com",
    ".openai.azure.com",
    "openrouter.ai",
    "api.groq.com",
    "api.together.xyz",
    "api.perplexity.ai",
    "api.deepseek.com",
    "api.moonshot.cn",
    "api.mistral.ai",
    "dashscope.aliyuncs.com",
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
]


def normalize_base_url(base_url: str) -> str:
    return base_url.strip().rstrip("/")


def has_scheme(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def remove_api_path_suffix(base_url: str) -> Optional[str]:
    """
    Strip the longest known API path suffix.

    Returns None when no suffix matches or stripping would leave nothing.
    """
    url = normalize_base_url(base_url)
    if not url:
        return None

    lowered = url.lower()
    for suffix in sorted(API_PATH_SUFFIXES, key=len, reverse=True):
        if lowered.endswith(suffix.lower()):
            stripped = url[:len(url) - len(suffix)].rstrip("/")
            return stripped or None
    return None


def build_base_url_candidates(raw_base_url: str) -> list[str]:
    """
    Expand user input into ordered, de-duplicated base URL candidates.

    Without a scheme both https and http are tried (https first). Each scheme
    variant is followed by its suffix-stripped form, when there is one.

    Example:
        >>> build_base_url_candidates("api.example.com/v1/chat/completions/")
        ['https://api.example.com/v1/chat/completions', 'https://api.example.com',
         'http://api.example.com/v1/chat/completions', 'http://api.example.com']
    """
    base_url = normalize_base_url(raw_base_url)
    if not base_url:
        return []

    if has_scheme(base_url):
        urls = [base_url]
    else:
        urls = [f"https://{base_url}", f"http://{base_url}"]

    candidates: list[str] = []
    for url in urls:
        if url not in candidates:
            candidates.append(url)
        stripped = remove_api_path_suffix(url)
        if stripped and stripped != url and stripped not in candidates:
            candidates.append(stripped)
    return candidates


def parse_api_keys(api_key_string: str) -> list[str]:
    """Split a key field on commas and line breaks, dropping blanks."""
    normalized = api_key_string.replace("\r", ",").replace("\n", ",")
    return [key.strip() for key in normalized.split(",") if key.strip()]


def guess_protocol_from_url(base_url: str) -> Optional[ProtocolType]:
    url = base_url.lower()
    if any(p in url for p in ANTHROPIC_HOST_PATTERNS):
        return ProtocolType.ANTHROPIC
    if any(p in url for p in GEMINI_HOST_PATTERNS):
        return ProtocolType.GEMINI
    if any(p in url for p in OPENAI_HOST_PATTERNS):
        return ProtocolType.OPENAI
    return None


def guess_protocol_from_key(api_key: str) -> Optional[ProtocolType]:
    key = api_key.strip()
    if not key:
        return None
    if key.startswith("sk-ant-"):
        return ProtocolType.ANTHROPIC
    if key.startswith("AIza") and len(key) >= 20:
        return ProtocolType.GEMINI
    if key.startswith("sk-") and len(key) >= 20:
        return ProtocolType.OPENAI
    return None


def extract_openai_models(payload, name_fallback: bool = True) -> list[str]:
    """
    Model ids from an OpenAI-style listing.

    Reads data[].id; if that yields nothing, falls back to models[].id (and,
    with name_fallback, models[].name). Result is sorted and de-duplicated.
    """
    if not isinstance(payload, dict):
        return []

    ids = [
        item["id"] for item in _as_list(payload.get("data"))
        if isinstance(item.get("id"), str)
    ]
    if not ids:
        for item in _as_list(payload.get("models")):
            if isinstance(item.get("id"), str):
                ids.append(item["id"])
            elif name_fallback and isinstance(item.get("name"), str):
                ids.append(item["name"])
    return sorted(set(ids))


def extract_gemini_models(payload) -> list[str]:
    """Model ids from a Gemini listing, with the "models/" prefix removed."""
    if not isinstance(payload, dict):
        return []

    ids = []
    for item in _as_list(payload.get("models")):
        name = item.get("name")
        if isinstance(name, str):
            ids.append(name[len("models/"):] if name.startswith("models/") else name)
    return sorted(set(ids))


def _as_list(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
