"""
Retry-on-Expiry Policy for the qBittorrent client.
A 403 response means the session cookie was rejected; the policy logs in
again and resends the same request exactly once.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .auth import AuthFlow
from .exceptions import QBittorrentError, ReauthenticationError
from .transport import RawResponse, RequestDescriptor, Transport

logger = logging.getLogger(__name__)

FORBIDDEN = 403


class RetryState(Enum):
    """Per-call retry states."""
    FRESH = "fresh"      # No re-login attempted yet
    RETRIED = "retried"  # Re-login done and request resent; terminal


@dataclass
class ReauthStats:
    """Counters for the re-login policy."""
    requests_sent: int = 0
    reauthentications: int = 0
    reauth_failures: int = 0
    forbidden_after_retry: int = 0


class ReauthPolicy:
    """
    Wraps the transport with a single re-login on 403.

    Each call to execute() starts FRESH. A forbidden first response moves
    it to RETRIED: the response is dropped, the auth flow runs, and the
    identical descriptor is sent again. Whatever the second response is,
    it is returned; there is never a third request.
    """

    def __init__(self, transport: Transport, auth: AuthFlow):
        self._transport = transport
        self._auth = auth
        self._stats = ReauthStats()

    @property
    def stats(self) -> ReauthStats:
        return self._stats

    async def _send(self, descriptor: RequestDescriptor) -> RawResponse:
        self._stats.requests_sent += 1
        return await self._transport.send(descriptor)

    async def execute(self, descriptor: RequestDescriptor) -> RawResponse:
        """
        Send a request, re-authenticating once if the session expired.

        Raises:
            ReauthenticationError: if the login triggered by a 403 fails
        """
        state = RetryState.FRESH
        while True:
            response = await self._send(descriptor)
            if response.status != FORBIDDEN:
                return response
            if state is RetryState.RETRIED:
                break

            state = RetryState.RETRIED
            logger.info(
                f"{descriptor.method} {descriptor.path} returned 403, re-authenticating",
                extra={
                    "operation": descriptor.operation,
                    "endpoint": descriptor.path,
                    "status": response.status,
                    "attempt": state.value,
                },
            )
            await self._reauthenticate(descriptor)

        self._stats.forbidden_after_retry += 1
        logger.warning(
            f"{descriptor.method} {descriptor.path} still forbidden after re-authentication",
            extra={
                "operation": descriptor.operation,
                "endpoint": descriptor.path,
                "status": response.status,
                "attempt": state.value,
            },
        )
        return response

    async def _reauthenticate(self, descriptor: RequestDescriptor) -> None:
        try:
            await self._auth.login()
        except QBittorrentError as e:
            self._stats.reauth_failures += 1
            logger.error(
                f"Re-authentication failed: {e}",
                extra={"operation": descriptor.operation, "endpoint": descriptor.path},
            )
            raise ReauthenticationError(
                "re-authentication failed",
                status=getattr(e, "status", None),
                body=getattr(e, "body", ""),
                details=str(e),
            ) from e
        self._stats.reauthentications += 1

    def get_stats(self) -> dict:
        """Get re-login statistics."""
        return {
            "requests_sent": self._stats.requests_sent,
            "reauthentications": self._stats.reauthentications,
            "reauth_failures": self._stats.reauth_failures,
            "forbidden_after_retry": self._stats.forbidden_after_retry,
        }
