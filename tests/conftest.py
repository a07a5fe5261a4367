"""
Pytest configuration and shared fixtures.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from multidict import MultiDict

from qbittorrent_client import QBittorrentClient


# ============================================================================
# Fake qBittorrent Web API
# ============================================================================

@dataclass
class RecordedRequest:
    """One request as seen by the fake service."""
    method: str
    path: str
    query: MultiDict
    cookies: Dict[str, str]
    headers: Dict[str, str]
    form: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, List[Tuple[str, bytes]]] = field(default_factory=dict)


class FakeQBittorrent:
    """
    In-process stand-in for the qBittorrent Web API.

    Login accepts admin/adminadmin and sets an SID cookie. Other paths
    answer with whatever was scripted through respond(); unscripted paths
    return 200 with an empty body.
    """

    def __init__(self):
        self.username = "admin"
        self.password = "adminadmin"
        self.requests: List[RecordedRequest] = []
        self.sessions: set = set()
        self.enforce_session = False
        self.delay = 0.0
        self.login_count = 0
        self._responses: Dict[str, Tuple[int, bytes, str]] = {}
        self._forbidden: Dict[str, int] = {}

    def respond(self, path: str, body: Any, status: int = 200, content_type: Optional[str] = None) -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode()
            content_type = content_type or "application/json"
        elif isinstance(body, str):
            body = body.encode()
        self._responses[path] = (status, body, content_type or "text/plain")

    def forbid(self, path: str, times: int = 1) -> None:
        """Answer the next ``times`` requests to ``path`` with 403."""
        self._forbidden[path] = times

    def expire_sessions(self) -> None:
        self.sessions.clear()

    def requests_to(self, path: str) -> List[RecordedRequest]:
        return [r for r in self.requests if r.path == path]

    async def _record(self, request: web.Request) -> RecordedRequest:
        recorded = RecordedRequest(
            method=request.method,
            path=request.path,
            query=MultiDict(request.query),
            cookies=dict(request.cookies),
            headers=dict(request.headers),
        )
        if request.method == "POST":
            data = await request.post()
            for key, value in data.items():
                if isinstance(value, web.FileField):
                    recorded.files.setdefault(key, []).append((value.filename, value.file.read()))
                else:
                    recorded.form.setdefault(key, []).append(value)
        self.requests.append(recorded)
        return recorded

    async def handle(self, request: web.Request) -> web.Response:
        recorded = await self._record(request)

        if recorded.path == "/api/v2/auth/login":
            return self._login(recorded)
        if recorded.path == "/api/v2/auth/logout":
            self.sessions.discard(recorded.cookies.get("SID"))
            return web.Response(text="")

        if self.delay:
            await asyncio.sleep(self.delay)

        remaining = self._forbidden.get(recorded.path, 0)
        if remaining > 0:
            self._forbidden[recorded.path] = remaining - 1
            return web.Response(status=403, text="Forbidden")
        if self.enforce_session and recorded.cookies.get("SID") not in self.sessions:
            return web.Response(status=403, text="Forbidden")

        status, body, content_type = self._responses.get(recorded.path, (200, b"", "text/plain"))
        return web.Response(status=status, body=body, content_type=content_type)

    def _login(self, recorded: RecordedRequest) -> web.Response:
        username = recorded.form.get("username", [""])[0]
        password = recorded.form.get("password", [""])[0]
        if username != self.username or password != self.password:
            return web.Response(text="Fails.")

        self.login_count += 1
        sid = f"session-{self.login_count}"
        self.sessions.add(sid)
        response = web.Response(text="Ok.")
        response.set_cookie("SID", sid, path="/")
        return response


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_qbittorrent():
    """The fake service's state and scripting handle."""
    return FakeQBittorrent()


@pytest.fixture
async def qbt_server(fake_qbittorrent):
    """Run the fake service on a local port."""
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", fake_qbittorrent.handle)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def base_url(qbt_server):
    return str(qbt_server.make_url("/"))


@pytest.fixture(params=["cookie_jar", "token"])
def session_strategy(request):
    """Run a test once per session storage strategy."""
    return request.param


@pytest.fixture
async def qbt_client(base_url):
    """A client configured for the fake service, not yet logged in."""
    client = QBittorrentClient(base_url=base_url, username="admin", password="adminadmin")
    yield client
    await client.close()


@pytest.fixture
def sample_torrent():
    """One /api/v2/torrents/info entry."""
    return {
        "hash": "8c212779b4abde7c6bc608063a0d008b7e40ce32",
        "name": "debian-12.5.0-amd64-netinst.iso",
        "category": "linux",
        "tags": "iso, debian",
        "state": "uploading",
        "size": 659554304,
        "progress": 1.0,
        "dlspeed": 0,
        "upspeed": 10240,
        "added_on": 1700000000,
        "completion_on": -1,
        "seq_dl": False,
        "f_l_piece_prio": True,
        "save_path": "/downloads/linux",
        "some_future_field": {"nested": True},
    }
