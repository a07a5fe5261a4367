"""
Tests for the Request Transport (qbittorrent_client/transport.py)
"""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from qbittorrent_client.exceptions import (
    ConfigurationError,
    RequestTimeoutError,
    TransportError,
)
from qbittorrent_client.session import CookieJarSession, TokenSession
from qbittorrent_client.transport import (
    FORM_CONTENT_TYPE,
    MultipartFile,
    RequestDescriptor,
    Transport,
    encode_multipart,
    parse_base_url,
)


class TestParseBaseUrl:
    """Tests for base address validation."""

    @pytest.mark.parametrize(
        "base_url",
        ["http://localhost:8080", "https://nas.example.com/qbt/", "http://192.168.1.10:8080/"],
    )
    def test_valid(self, base_url):
        """Test accepted base addresses."""
        assert parse_base_url(base_url).host

    @pytest.mark.parametrize(
        "base_url",
        ["", "localhost:8080", "ftp://localhost", "http://", "/api/v2"],
    )
    def test_invalid(self, base_url):
        """Test rejected base addresses."""
        with pytest.raises(ConfigurationError):
            parse_base_url(base_url)


class TestRequestDescriptor:
    """Tests for RequestDescriptor."""

    def test_get_keeps_param_order(self):
        """Test get keeps param order."""
        descriptor = RequestDescriptor.get("/api/v2/sync/torrentPeers", [("rid", 3), ("hash", "abc")])
        assert descriptor.method == "GET"
        assert descriptor.params == (("rid", "3"), ("hash", "abc"))
        assert descriptor.body is None

    def test_form_body(self):
        """Test form body is url encoded."""
        descriptor = RequestDescriptor.form(
            "/api/v2/torrents/delete", {"hashes": "a|b", "deleteFiles": "true"}
        )
        assert descriptor.method == "POST"
        assert descriptor.content_type == FORM_CONTENT_TYPE
        assert descriptor.body == b"hashes=a%7Cb&deleteFiles=true"

    def test_empty_form(self):
        """Test a form with no fields has an empty body."""
        descriptor = RequestDescriptor.form("/api/v2/auth/logout")
        assert descriptor.body == b""

    def test_frozen(self):
        """Test descriptors are immutable."""
        descriptor = RequestDescriptor.get("/api/v2/app/version")
        with pytest.raises(AttributeError):
            descriptor.path = "/other"


class TestEncodeMultipart:
    """Tests for multipart rendering."""

    @pytest.mark.asyncio
    async def test_files_then_fields(self):
        """Test files then fields."""
        body, content_type = await encode_multipart(
            [("urls", "magnet:?xt=urn:btih:aaa"), ("urls", "magnet:?xt=urn:btih:bbb"), ("paused", "true")],
            [MultipartFile("torrents", "torrent0.torrent", b"d8:announce0:e")],
        )

        assert content_type.startswith("multipart/form-data; boundary=")
        boundary = content_type.split("boundary=", 1)[1].strip('"')
        assert body.endswith(f"--{boundary}--\r\n".encode())

        torrent_at = body.index(b'name="torrents"; filename="torrent0.torrent"')
        first_url_at = body.index(b"magnet:?xt=urn:btih:aaa")
        second_url_at = body.index(b"magnet:?xt=urn:btih:bbb")
        assert torrent_at < first_url_at < second_url_at
        assert b"Content-Type: application/x-bittorrent" in body
        assert b"d8:announce0:e" in body

    @pytest.mark.asyncio
    async def test_rendered_once(self):
        """Test rendered once."""
        body, content_type = await encode_multipart([("category", "tv")])
        descriptor = RequestDescriptor.multipart("/api/v2/torrents/add", body, content_type)
        assert descriptor.body == body
        assert descriptor.content_type == content_type


class TestTransport:
    """Tests for Transport.send()."""

    @pytest.mark.asyncio
    async def test_build_url_keeps_base_path(self):
        """Test build url keeps base path."""
        transport = Transport("https://nas.example.com/qbt/", CookieJarSession())
        assert str(transport.build_url("/api/v2/app/version")) == "https://nas.example.com/qbt/api/v2/app/version"

    @pytest.mark.asyncio
    async def test_send_reads_response(self, base_url, fake_qbittorrent):
        """Test send reads response."""
        fake_qbittorrent.respond("/api/v2/app/version", "v4.6.2")
        transport = Transport(base_url, TokenSession())
        try:
            response = await transport.send(RequestDescriptor.get("/api/v2/app/version"))
        finally:
            await transport.close()

        assert response.status == 200
        assert response.text == "v4.6.2"
        assert fake_qbittorrent.requests[0].headers["Referer"] == base_url

    @pytest.mark.asyncio
    async def test_repeated_query_keys(self, base_url, fake_qbittorrent):
        """Test repeated query keys."""
        transport = Transport(base_url, TokenSession())
        try:
            await transport.send(RequestDescriptor.get("/api/v2/torrents/info", [("tag", "a"), ("tag", "b")]))
        finally:
            await transport.close()

        assert fake_qbittorrent.requests[0].query.getall("tag") == ["a", "b"]

    @pytest.mark.asyncio
    async def test_connection_error(self, unused_tcp_port):
        """Test connection failure raises TransportError."""
        transport = Transport(f"http://127.0.0.1:{unused_tcp_port}", CookieJarSession())
        try:
            with pytest.raises(TransportError) as exc_info:
                await transport.send(RequestDescriptor.get("/api/v2/app/version", operation="AppVersion"))
        finally:
            await transport.close()
        assert isinstance(exc_info.value.__cause__, aiohttp.ClientError)
        assert str(exc_info.value).startswith("AppVersion: ")

    @pytest.mark.asyncio
    async def test_timeout(self, base_url, fake_qbittorrent):
        """Test a slow response raises RequestTimeoutError."""
        fake_qbittorrent.delay = 0.5
        transport = Transport(base_url, CookieJarSession(), timeout=0.05)
        try:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await transport.send(RequestDescriptor.get("/api/v2/app/version"))
        finally:
            await transport.close()
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_cancellation_not_wrapped(self, base_url, fake_qbittorrent):
        """Test cancellation not wrapped."""
        fake_qbittorrent.delay = 0.5
        transport = Transport(base_url, CookieJarSession())
        try:
            task = asyncio.create_task(transport.send(RequestDescriptor.get("/api/v2/app/version")))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_closed_supplied_session(self):
        """Test closed supplied session."""
        session = aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True))
        await session.close()
        transport = Transport("http://localhost:8080", CookieJarSession(), session=session)

        with pytest.raises(TransportError):
            await transport.send(RequestDescriptor.get("/api/v2/app/version"))

    @pytest.mark.asyncio
    async def test_close_only_owned_session(self):
        """Test close only owned session."""
        session = MagicMock(spec=aiohttp.ClientSession)
        session.closed = False
        transport = Transport("http://localhost:8080", TokenSession(), session=session)

        await transport.close()

        session.close.assert_not_called()
        assert transport.session is session
