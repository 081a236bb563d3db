"""
Error taxonomy for vendorlink.

Every failure the core raises derives from VendorLinkError so callers can
catch one type at the seam. Detection never raises these; it reports a
structured result instead (see vendors/detect.py).
"""

from typing import Optional


class VendorLinkError(Exception):
    """Base class for vendorlink errors."""
    pass


class ConfigurationError(VendorLinkError):
    """No usable vendor configuration. Raised before any network call."""
    pass


class ValidationError(VendorLinkError):
    """Caller supplied input the core cannot act on."""
    pass


class SessionNotFoundError(ValidationError):
    """Continuation requested for a session id that was never created."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class TransportError(VendorLinkError):
    """Connect, timeout or read failure talking to the vendor."""
    pass


class ProtocolError(VendorLinkError):
    """Vendor answered with a non-2xx status or an error envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TurnInterruptedError(VendorLinkError):
    """The workspace was interrupted while a turn was streaming."""
