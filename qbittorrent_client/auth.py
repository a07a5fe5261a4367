"""
Auth Flow for the qBittorrent Web API.
Turns username/password into a session credential stored by the session
strategy. Also used by the retry policy when a session expires.
"""

import logging

from .exceptions import APIError, AuthenticationError, TransportError, body_excerpt
from .session import SessionStrategy
from .transport import RequestDescriptor, Transport

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/v2/auth/login"
LOGOUT_PATH = "/api/v2/auth/logout"


class AuthFlow:
    """Login/logout handshake against /api/v2/auth."""

    def __init__(
        self,
        transport: Transport,
        strategy: SessionStrategy,
        username: str = "",
        password: str = "",
        failure_marker: str = "Fails.",
    ):
        self._transport = transport
        self._strategy = strategy
        self.username = username
        self._password = password
        self.failure_marker = failure_marker
        self.login_count = 0

    async def login(self) -> None:
        """
        Perform one login exchange and store the resulting credential.

        Safe to call repeatedly; every call replaces the stored credential.

        Raises:
            AuthenticationError: on a non-200 status, a failure body, a
                missing session cookie, or a transport failure
        """
        descriptor = RequestDescriptor.form(
            LOGIN_PATH,
            [("username", self.username), ("password", self._password)],
            operation="AuthLogin",
        )
        try:
            response = await self._transport.send(descriptor)
        except TransportError as e:
            logger.error(f"Login request failed: {e}", extra={"operation": "AuthLogin"})
            raise AuthenticationError("AuthLogin error", details=str(e)) from e

        excerpt = body_excerpt(response.body)
        if response.status != 200:
            logger.warning(
                f"Login rejected with HTTP {response.status}",
                extra={"operation": "AuthLogin", "status": response.status},
            )
            raise AuthenticationError(
                f"AuthLogin error ({response.status})",
                status=response.status,
                body=excerpt,
            )
        if excerpt == self.failure_marker:
            logger.warning(
                f"Login failed for user {self.username!r}: invalid credentials",
                extra={"operation": "AuthLogin", "status": response.status},
            )
            raise AuthenticationError(
                "AuthLogin error: invalid username or password",
                status=response.status,
                body=excerpt,
            )

        await self._strategy.capture(response)
        self.login_count += 1
        logger.info(
            f"Authenticated to qBittorrent as {self.username!r}",
            extra={"operation": "AuthLogin", "session_strategy": self._strategy.name},
        )

    async def logout(self) -> None:
        """End the remote session and forget the local credential."""
        descriptor = RequestDescriptor.form(LOGOUT_PATH, operation="AuthLogout")
        try:
            response = await self._transport.send(descriptor)
        finally:
            await self._strategy.clear()

        if response.status != 200:
            raise APIError("AuthLogout", response.status, body_excerpt(response.body))
        logger.info("Logged out of qBittorrent", extra={"operation": "AuthLogout"})
