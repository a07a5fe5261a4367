"""
Exception hierarchy for the qBittorrent client.
Every failure raised by the library derives from QBittorrentError.
"""

# Longest response excerpt carried by an error
BODY_EXCERPT_LIMIT = 512


def body_excerpt(body: bytes | str | None, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Decode and truncate a response body for inclusion in an error."""
    if not body:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    body = body.strip()
    if len(body) > limit:
        return body[:limit] + "..."
    return body


class QBittorrentError(Exception):
    """Base exception for all qBittorrent client errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# Configuration errors
class ConfigurationError(QBittorrentError):
    """Raised when the client is configured with unusable values."""

    pass


# Transport errors
class TransportError(QBittorrentError):
    """Raised when the HTTP exchange itself fails."""

    pass


class RequestTimeoutError(TransportError):
    """Raised when a request does not finish before its deadline."""

    def __init__(self, message: str, timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout


# Authentication errors
class AuthenticationError(QBittorrentError):
    """Raised when the login exchange is rejected."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str = "",
        details: str | None = None,
    ):
        super().__init__(message, details=details or body or None)
        self.status = status
        self.body = body


class ReauthenticationError(AuthenticationError):
    """Raised when logging in again after a 403 response fails."""

    pass


# Protocol errors
class APIError(QBittorrentError):
    """Raised when an endpoint answers with a non-success status."""

    def __init__(self, operation: str, status: int, body: str = ""):
        super().__init__(f"{operation} error ({status})", details=body or None)
        self.operation = operation
        self.status = status
        self.body = body


# Decoding errors
class DecodeError(QBittorrentError):
    """Raised when a response body cannot be decoded into the expected shape."""

    def __init__(self, shape: str, reason: str):
        super().__init__(f"failed to decode {shape} response", details=reason)
        self.shape = shape
