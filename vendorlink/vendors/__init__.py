"""
Vendor protocol detection and model probing.

detect_protocol classifies an unknown endpoint; probe_openai_models lists
models on one that is already known to be OpenAI-compatible.
"""

from .detect import detect_protocol
from .openai_probe import probe_openai_models
from .schema import OpenAIProbeResult, ProtocolDetectionResult, ProtocolType

__all__ = [
    "detect_protocol",
    "probe_openai_models",
    "OpenAIProbeResult",
    "ProtocolDetectionResult",
    "ProtocolType",
]
