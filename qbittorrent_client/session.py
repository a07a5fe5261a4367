"""
Session State for the qBittorrent client.
Holds the credential obtained by the login handshake and attaches it to
outgoing requests. Two interchangeable strategies share one interface:

    CookieJarSession  the aiohttp cookie jar stores the SID cookie and sends
                      it automatically with every request (default)
    TokenSession      the SID value is kept here and attached explicitly as
                      a Cookie header; the HTTP session stores no cookies
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, AsyncIterator, MutableMapping, Optional, Set

import aiohttp
from aiohttp.abc import AbstractCookieJar

from .exceptions import AuthenticationError, ConfigurationError

if TYPE_CHECKING:
    from .transport import RawResponse

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Reader/writer lock for asyncio tasks.

    Any number of readers may hold the lock together. A writer holds it
    alone. Once a writer is waiting, new readers queue behind it so a
    re-login is not starved by a steady stream of requests.

    Releasing never suspends before the counters are updated, so a task
    cancelled on its way out still gives the lock back.
    """

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        self._wakeups: Set[asyncio.Task] = set()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    async def _notify_waiters(self) -> None:
        async with self._cond:
            self._cond.notify_all()

    async def _wake(self) -> None:
        # Waiters re-check their predicate, so a late wakeup is harmless
        task = asyncio.ensure_future(self._notify_waiters())
        self._wakeups.add(task)
        task.add_done_callback(self._wakeups.discard)
        await asyncio.shield(task)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._writers_waiting == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            self._readers -= 1
            if self._readers == 0:
                await self._wake()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            finally:
                self._writers_waiting -= 1
                # Readers blocked on a writer that gave up must re-check
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            self._writer = False
            await self._wake()


class SessionStrategy(ABC):
    """
    Capability shared by both session storage strategies:
    attach the current credential to a request, capture a new one from
    a login response, and forget it.
    """

    name = "base"

    def __init__(self, cookie_name: str = "SID"):
        self.cookie_name = cookie_name
        self._lock = ReadWriteLock()
        self._obtained_at: Optional[datetime] = None

    @property
    def obtained_at(self) -> Optional[datetime]:
        """When the current credential was captured, or None."""
        return self._obtained_at

    @property
    def is_authenticated(self) -> bool:
        return self._obtained_at is not None

    @abstractmethod
    def create_cookie_jar(self) -> AbstractCookieJar:
        """Cookie jar for the aiohttp session this strategy drives."""

    @abstractmethod
    def bind_cookie_jar(self, jar: AbstractCookieJar) -> None:
        """Adopt the jar of a caller-supplied aiohttp session."""

    @abstractmethod
    async def attach(self, headers: MutableMapping[str, str]) -> None:
        """Add the current credential to outgoing request headers."""

    @abstractmethod
    async def capture(self, response: "RawResponse") -> None:
        """Store the credential carried by a successful login response."""

    @abstractmethod
    async def clear(self) -> None:
        """Forget the current credential."""


class CookieJarSession(SessionStrategy):
    """Session state delegated to an aiohttp cookie jar."""

    name = "cookie_jar"

    def __init__(self, cookie_name: str = "SID"):
        super().__init__(cookie_name)
        self._jar: Optional[AbstractCookieJar] = None

    @property
    def jar(self) -> Optional[AbstractCookieJar]:
        return self._jar

    def create_cookie_jar(self) -> AbstractCookieJar:
        # unsafe=True keeps cookies set by IP-address hosts (typical for NAS/LAN installs)
        self._jar = aiohttp.CookieJar(unsafe=True)
        return self._jar

    def bind_cookie_jar(self, jar: AbstractCookieJar) -> None:
        if isinstance(jar, aiohttp.DummyCookieJar):
            raise ConfigurationError(
                "cookie_jar session strategy needs an aiohttp session with a real cookie jar",
                details="the supplied session uses DummyCookieJar",
            )
        self._jar = jar

    async def attach(self, headers: MutableMapping[str, str]) -> None:
        # The jar adds the cookie inside aiohttp; waiting on the read side
        # keeps requests from starting while a login is being recorded.
        async with self._lock.read():
            return

    async def capture(self, response: "RawResponse") -> None:
        # aiohttp has already stored Set-Cookie in the jar while reading the response
        async with self._lock.write():
            if self.cookie_name not in response.cookies:
                logger.warning(
                    f"Login response carried no {self.cookie_name} cookie; "
                    "relying on cookies already in the jar"
                )
            self._obtained_at = datetime.now(timezone.utc)

    async def clear(self) -> None:
        async with self._lock.write():
            if self._jar is not None:
                self._jar.clear()
            self._obtained_at = None


class TokenSession(SessionStrategy):
    """Session state kept as an explicit token attached to every request."""

    name = "token"

    def __init__(self, cookie_name: str = "SID"):
        super().__init__(cookie_name)
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def create_cookie_jar(self) -> AbstractCookieJar:
        return aiohttp.DummyCookieJar()

    def bind_cookie_jar(self, jar: AbstractCookieJar) -> None:
        # The token is sent explicitly; whatever the jar holds is left alone
        return

    async def attach(self, headers: MutableMapping[str, str]) -> None:
        async with self._lock.read():
            token = self._token
        if token:
            headers["Cookie"] = f"{self.cookie_name}={token}"

    async def capture(self, response: "RawResponse") -> None:
        morsel = response.cookies.get(self.cookie_name)
        token = morsel.value if morsel is not None else None
        if not token:
            raise AuthenticationError(
                f"Login response did not set the {self.cookie_name} cookie",
                status=response.status,
            )
        async with self._lock.write():
            self._token = token
            self._obtained_at = datetime.now(timezone.utc)

    async def clear(self) -> None:
        async with self._lock.write():
            self._token = None
            self._obtained_at = None


STRATEGIES = {
    CookieJarSession.name: CookieJarSession,
    TokenSession.name: TokenSession,
}


def create_session_strategy(name: str, cookie_name: str = "SID") -> SessionStrategy:
    """Build the session strategy selected by configuration."""
    try:
        strategy_cls = STRATEGIES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown session strategy: {name}",
            details=f"expected one of {', '.join(STRATEGIES)}",
        ) from None
    return strategy_cls(cookie_name)
