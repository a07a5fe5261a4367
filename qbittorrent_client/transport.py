"""
Request Transport for the qBittorrent Web API.
Builds and issues a single HTTP request against the configured base
address, attaching the session credential, and returns the fully read
response.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from http.cookies import SimpleCookie
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

import aiohttp
from aiohttp import payload as aiohttp_payload
from multidict import CIMultiDict
from yarl import URL

from .exceptions import ConfigurationError, RequestTimeoutError, TransportError
from .session import SessionStrategy

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

ParamPairs = Tuple[Tuple[str, str], ...]
ParamsLike = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


def _as_pairs(params: ParamsLike) -> ParamPairs:
    """Normalize a mapping or sequence of pairs into an ordered tuple."""
    if not params:
        return ()
    items = params.items() if isinstance(params, Mapping) else params
    return tuple((str(key), str(value)) for key, value in items)


@dataclass(frozen=True)
class RequestDescriptor:
    """
    One request to the Web API.

    The body is always held as bytes so the same descriptor can be sent
    again, byte for byte, after a re-login.
    """
    method: str
    path: str
    params: ParamPairs = ()
    body: Optional[bytes] = None
    content_type: Optional[str] = None
    operation: str = ""

    @classmethod
    def get(cls, path: str, params: ParamsLike = None, operation: str = "") -> "RequestDescriptor":
        return cls("GET", path, params=_as_pairs(params), operation=operation)

    @classmethod
    def form(cls, path: str, data: ParamsLike = None, operation: str = "") -> "RequestDescriptor":
        return cls(
            "POST",
            path,
            body=urlencode(_as_pairs(data)).encode("ascii"),
            content_type=FORM_CONTENT_TYPE,
            operation=operation,
        )

    @classmethod
    def multipart(cls, path: str, body: bytes, content_type: str, operation: str = "") -> "RequestDescriptor":
        return cls("POST", path, body=bytes(body), content_type=content_type, operation=operation)


@dataclass
class MultipartFile:
    """A binary part of a multipart body."""
    name: str
    filename: str
    data: bytes
    content_type: str = "application/x-bittorrent"


class _BufferSink:
    """Collects what aiohttp's multipart writer emits."""

    def __init__(self):
        self._chunks = []

    async def write(self, data) -> None:
        self._chunks.append(bytes(data))

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


async def encode_multipart(
    fields: Sequence[Tuple[str, str]],
    files: Sequence[MultipartFile] = (),
) -> Tuple[bytes, str]:
    """
    Render a multipart/form-data body into memory.

    Files come first, then scalar fields in the given order (repeated
    names are kept). Returns the body and its content type, boundary
    included.
    """
    writer = aiohttp.MultipartWriter("form-data")
    for item in files:
        part = aiohttp_payload.get_payload(item.data, content_type=item.content_type)
        part.set_content_disposition("form-data", name=item.name, filename=item.filename)
        writer.append_payload(part)
    for name, value in fields:
        part = aiohttp_payload.get_payload(value)
        part.set_content_disposition("form-data", name=name)
        writer.append_payload(part)

    sink = _BufferSink()
    await writer.write(sink)
    return sink.getvalue(), writer.content_type


@dataclass
class RawResponse:
    """A fully read HTTP response."""
    status: int
    body: bytes = b""
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    cookies: SimpleCookie = field(default_factory=SimpleCookie)
    url: Optional[URL] = None

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def parse_base_url(base_url: str) -> URL:
    """Validate the configured base address."""
    try:
        url = URL(base_url)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed base URL: {base_url!r}", details=str(e)) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Malformed base URL: {base_url!r}",
            details="expected an absolute http:// or https:// address",
        )
    return url.with_query(None).with_fragment(None)


class Transport:
    """
    Issues requests for one client instance.

    The aiohttp session is created lazily inside the running event loop,
    with the cookie jar chosen by the session strategy. A caller-supplied
    session is used as-is and left open on close().
    """

    def __init__(
        self,
        base_url: str,
        strategy: SessionStrategy,
        timeout: Optional[float] = 30.0,
        verify_ssl: bool = True,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = parse_base_url(base_url)
        self.strategy = strategy
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self._session = session
        self._owns_session = session is None
        if session is not None:
            strategy.bind_cookie_jar(session.cookie_jar)

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session

    def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            if not self._owns_session:
                raise TransportError("The supplied aiohttp session is closed")
            connector = aiohttp.TCPConnector(ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=self.strategy.create_cookie_jar(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    def build_url(self, path: str) -> URL:
        return self.base_url.with_path(self.base_url.path.rstrip("/") + path)

    async def send(self, descriptor: RequestDescriptor) -> RawResponse:
        """
        Send one request and read the whole response.

        Raises:
            ConfigurationError: if the resulting address is invalid
            RequestTimeoutError: if the client-wide timeout expires
            TransportError: on connection or body I/O failure
        """
        url = self.build_url(descriptor.path)
        label = descriptor.operation or f"{descriptor.method} {descriptor.path}"

        headers = {"Referer": str(self.base_url)}
        if descriptor.content_type:
            headers["Content-Type"] = descriptor.content_type
        await self.strategy.attach(headers)

        session = self._get_session()
        started = time.monotonic()
        try:
            async with session.request(
                descriptor.method,
                url,
                params=list(descriptor.params) or None,
                data=descriptor.body,
                headers=headers,
            ) as response:
                body = await response.read()
                raw = RawResponse(
                    status=response.status,
                    body=body,
                    headers=CIMultiDict(response.headers),
                    cookies=response.cookies,
                    url=response.url,
                )
        except aiohttp.InvalidURL as e:
            raise ConfigurationError(f"{label}: invalid request URL {url}", details=str(e)) from e
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"{label}: request timed out", timeout=self.timeout) from e
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"{label}: request to {url} failed", details=str(e)) from e

        logger.debug(
            f"{descriptor.method} {descriptor.path} -> {raw.status}",
            extra={
                "operation": descriptor.operation,
                "method": descriptor.method,
                "endpoint": descriptor.path,
                "status": raw.status,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return raw

    async def close(self) -> None:
        """Close the aiohttp session if this transport created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None
