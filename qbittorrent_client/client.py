"""
qBittorrent Web API Client
Async client for the qBittorrent Web API (v2). Every endpoint goes through
the same pipeline: request descriptor -> re-login policy -> transport ->
response decoding.

Usage:
    async with QBittorrentClient(
        base_url="http://localhost:8080", username="admin", password="adminadmin"
    ) as client:
        torrents = await client.torrents_info()

Every endpoint coroutine accepts an optional ``timeout`` in seconds that
bounds the whole call, including a re-login. Cancelling the calling task
aborts the in-flight request as well.
"""

import asyncio
import dataclasses
import logging
import os
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import aiofiles
import aiohttp

from .auth import AuthFlow
from .config import ClientSettings
from .decoding import decode_json, decode_text
from .exceptions import APIError, RequestTimeoutError, body_excerpt
from .models import (
    Category,
    MainData,
    TorrentInfo,
    TorrentPeers,
    TorrentProperties,
    TrackerInfo,
)
from .params import (
    HashesLike,
    TorrentsAddParams,
    TorrentsInfoParams,
    format_bool,
    join_hashes,
    join_tags,
)
from .retry import ReauthPolicy
from .session import SessionStrategy, create_session_strategy
from .transport import RawResponse, RequestDescriptor, Transport, encode_multipart

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QBittorrentClient:
    """
    Client for one qBittorrent Web API instance.

    Safe to share between concurrent tasks on one event loop. The session
    credential is captured on login() and re-obtained automatically when
    the service answers 403.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        http_session: Optional[aiohttp.ClientSession] = None,
        **overrides: Any,
    ):
        """
        Initialize the client.

        Args:
            settings: Connection settings; loaded from the environment if omitted
            http_session: Existing aiohttp session to use instead of creating one
            **overrides: Individual ClientSettings fields (base_url, username, ...)

        Raises:
            ConfigurationError: If base_url is malformed or the session
                strategy is unknown or incompatible with http_session.
        """
        if settings is None:
            settings = ClientSettings(**overrides)
        elif overrides:
            settings = settings.model_copy(update=overrides)
        self.settings = settings

        self._strategy = create_session_strategy(
            settings.session_strategy, settings.session_cookie_name
        )
        self._transport = Transport(
            settings.base_url,
            self._strategy,
            timeout=settings.request_timeout,
            verify_ssl=settings.verify_ssl,
            session=http_session,
        )
        self._auth = AuthFlow(
            self._transport,
            self._strategy,
            username=settings.username,
            password=settings.password,
            failure_marker=settings.login_failure_marker,
        )
        self._policy = ReauthPolicy(self._transport, self._auth)

    @classmethod
    async def connect(
        cls,
        settings: Optional[ClientSettings] = None,
        **kwargs: Any,
    ) -> "QBittorrentClient":
        """Create a client and log in when credentials are configured."""
        client = cls(settings, **kwargs)
        if client.settings.has_credentials:
            try:
                await client.login()
            except BaseException:
                await client.close()
                raise
        return client

    async def __aenter__(self) -> "QBittorrentClient":
        if self.settings.has_credentials:
            await self.login()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def close(self) -> None:
        """Close the HTTP session (if owned). Does not log out."""
        await self._transport.close()

    @property
    def base_url(self) -> str:
        return str(self._transport.base_url)

    @property
    def session_strategy(self) -> SessionStrategy:
        return self._strategy

    @property
    def http_session(self) -> Optional[aiohttp.ClientSession]:
        return self._transport.session

    def get_stats(self) -> dict:
        stats = self._policy.get_stats()
        stats["logins"] = self._auth.login_count
        return stats

    # -------------------------------------------------------------------------
    # Pipeline helpers
    # -------------------------------------------------------------------------

    async def _with_deadline(self, operation: str, call: Awaitable[T], timeout: Optional[float]) -> T:
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"{operation} timed out after {timeout}s",
                extra={"operation": operation},
            )
            raise RequestTimeoutError(f"{operation} timed out after {timeout}s", timeout=timeout) from e

    async def _execute(self, descriptor: RequestDescriptor, timeout: Optional[float]) -> RawResponse:
        """Run a request through the re-login policy and require HTTP 200."""
        response = await self._with_deadline(
            descriptor.operation, self._policy.execute(descriptor), timeout
        )
        if response.status != 200:
            logger.warning(
                f"{descriptor.operation} failed with HTTP {response.status}",
                extra={
                    "operation": descriptor.operation,
                    "endpoint": descriptor.path,
                    "status": response.status,
                },
            )
            raise APIError(descriptor.operation, response.status, body_excerpt(response.body))
        return response

    async def _get(self, operation: str, path: str, params=None, timeout: Optional[float] = None) -> bytes:
        descriptor = RequestDescriptor.get(path, params, operation=operation)
        return (await self._execute(descriptor, timeout)).body

    async def _post_form(self, operation: str, path: str, data=None, timeout: Optional[float] = None) -> bytes:
        descriptor = RequestDescriptor.form(path, data, operation=operation)
        return (await self._execute(descriptor, timeout)).body

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, *, timeout: Optional[float] = None) -> None:
        """Log in with the configured username and password."""
        await self._with_deadline("AuthLogin", self._auth.login(), timeout)

    async def logout(self, *, timeout: Optional[float] = None) -> None:
        """End the remote session and forget the stored credential."""
        await self._with_deadline("AuthLogout", self._auth.logout(), timeout)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    async def app_version(self, *, timeout: Optional[float] = None) -> str:
        """Get the qBittorrent application version, e.g. "v4.6.2"."""
        body = await self._get("AppVersion", "/api/v2/app/version", timeout=timeout)
        return decode_text(body)

    async def webapi_version(self, *, timeout: Optional[float] = None) -> str:
        """Get the Web API version, e.g. "2.9.3"."""
        body = await self._get("WebAPIVersion", "/api/v2/app/webapiVersion", timeout=timeout)
        return decode_text(body)

    # -------------------------------------------------------------------------
    # Torrent listing and details
    # -------------------------------------------------------------------------

    async def torrents_info(
        self,
        params: Optional[TorrentsInfoParams] = None,
        *,
        timeout: Optional[float] = None,
    ) -> List[TorrentInfo]:
        """List torrents, optionally filtered."""
        query = params.to_query() if params is not None else None
        body = await self._get("TorrentsInfo", "/api/v2/torrents/info", query, timeout)
        return decode_json(body, List[TorrentInfo], "TorrentsInfo")

    async def torrents_properties(self, torrent_hash: str, *, timeout: Optional[float] = None) -> TorrentProperties:
        """Get generic properties of one torrent."""
        body = await self._get(
            "TorrentsProperties", "/api/v2/torrents/properties", {"hash": torrent_hash}, timeout
        )
        return decode_json(body, TorrentProperties, "TorrentsProperties")

    async def torrents_trackers(self, torrent_hash: str, *, timeout: Optional[float] = None) -> List[TrackerInfo]:
        """Get the trackers of one torrent."""
        body = await self._get(
            "TorrentsTrackers", "/api/v2/torrents/trackers", {"hash": torrent_hash}, timeout
        )
        return decode_json(body, List[TrackerInfo], "TorrentsTrackers")

    async def torrents_export(self, torrent_hash: str, *, timeout: Optional[float] = None) -> bytes:
        """Export the .torrent file of one torrent."""
        return await self._post_form(
            "TorrentsExport", "/api/v2/torrents/export", {"hash": torrent_hash}, timeout
        )

    async def torrents_download(self, torrent_hash: str, *, timeout: Optional[float] = None) -> bytes:
        """Fetch the .torrent file of one torrent through /torrents/file."""
        return await self._get(
            "TorrentsDownload", "/api/v2/torrents/file", {"hashes": torrent_hash}, timeout
        )

    # -------------------------------------------------------------------------
    # Adding and removing torrents
    # -------------------------------------------------------------------------

    async def torrents_add_params(self, params: TorrentsAddParams, *, timeout: Optional[float] = None) -> None:
        """Add torrents (files and/or URLs) with the given options."""
        body, content_type = await encode_multipart(params.to_fields(), params.to_files())
        descriptor = RequestDescriptor.multipart(
            "/api/v2/torrents/add", body, content_type, operation="TorrentsAdd"
        )
        await self._execute(descriptor, timeout)
        logger.info(
            f"Added {len(params.torrents)} torrent file(s) and {len(params.urls)} URL(s)",
            extra={"operation": "TorrentsAdd"},
        )

    async def torrents_add(
        self,
        torrent_file: str,
        file_data: bytes,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Add one .torrent file, skipping the hash check."""
        logger.debug(f"Adding torrent file {torrent_file}", extra={"operation": "TorrentsAdd"})
        params = TorrentsAddParams(torrents=[file_data], skip_checking=True)
        await self.torrents_add_params(params, timeout=timeout)

    async def torrents_add_file(
        self,
        path: str,
        params: Optional[TorrentsAddParams] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Read a .torrent file from disk and add it."""
        async with aiofiles.open(os.fspath(path), "rb") as f:
            data = await f.read()
        params = params or TorrentsAddParams()
        params = dataclasses.replace(params, torrents=[*params.torrents, data])
        await self.torrents_add_params(params, timeout=timeout)

    async def torrents_delete(
        self,
        hashes: HashesLike,
        delete_files: bool = True,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Delete torrents, by default together with their data."""
        await self._post_form(
            "TorrentsDelete",
            "/api/v2/torrents/delete",
            [("hashes", join_hashes(hashes)), ("deleteFiles", format_bool(delete_files))],
            timeout,
        )

    # -------------------------------------------------------------------------
    # Torrent control
    # -------------------------------------------------------------------------

    async def set_force_start(self, hashes: HashesLike, value: bool, *, timeout: Optional[float] = None) -> None:
        await self._post_form(
            "SetForceStart",
            "/api/v2/torrents/setForceStart",
            [("hashes", join_hashes(hashes)), ("value", format_bool(value))],
            timeout,
        )

    async def torrents_pause(self, hashes: HashesLike, *, timeout: Optional[float] = None) -> None:
        await self._post_form(
            "TorrentsPause", "/api/v2/torrents/pause", {"hashes": join_hashes(hashes)}, timeout
        )

    async def torrents_resume(self, hashes: HashesLike, *, timeout: Optional[float] = None) -> None:
        await self._post_form(
            "TorrentsResume", "/api/v2/torrents/resume", {"hashes": join_hashes(hashes)}, timeout
        )

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def torrents_categories(self, *, timeout: Optional[float] = None) -> Dict[str, Category]:
        body = await self._get("TorrentsCategories", "/api/v2/torrents/categories", timeout=timeout)
        return decode_json(body, Dict[str, Category], "TorrentsCategories")

    async def torrents_create_category(
        self,
        name: str,
        save_path: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> None:
        await self._post_form(
            "CreateCategory",
            "/api/v2/torrents/createCategory",
            [("category", name), ("savePath", save_path)],
            timeout,
        )

    async def torrents_set_category(
        self,
        hashes: HashesLike,
        category: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        await self._post_form(
            "SetCategory",
            "/api/v2/torrents/setCategory",
            [("hashes", join_hashes(hashes)), ("category", category)],
            timeout,
        )

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def _tag_operation(
        self,
        operation: str,
        path: str,
        hashes: HashesLike,
        tags: HashesLike,
        timeout: Optional[float],
    ) -> None:
        data = []
        joined_hashes = join_hashes(hashes)
        if joined_hashes:
            data.append(("hashes", joined_hashes))
        data.append(("tags", join_tags(tags)))
        await self._post_form(operation, path, data, timeout)

    async def torrents_add_tags(self, hashes: HashesLike, tags: HashesLike, *, timeout: Optional[float] = None) -> None:
        """Add tags to torrents."""
        await self._tag_operation("AddTags", "/api/v2/torrents/addTags", hashes, tags, timeout)

    async def torrents_remove_tags(self, hashes: HashesLike, tags: HashesLike, *, timeout: Optional[float] = None) -> None:
        """Remove tags from torrents."""
        await self._tag_operation("RemoveTags", "/api/v2/torrents/removeTags", hashes, tags, timeout)

    async def torrents_create_tags(self, tags: HashesLike, *, timeout: Optional[float] = None) -> None:
        """Create tags without assigning them."""
        await self._tag_operation("CreateTags", "/api/v2/torrents/createTags", "", tags, timeout)

    async def torrents_delete_tags(self, tags: HashesLike, *, timeout: Optional[float] = None) -> None:
        """Delete tags from the service."""
        await self._tag_operation("DeleteTags", "/api/v2/torrents/deleteTags", "", tags, timeout)

    async def torrents_get_all_tags(self, *, timeout: Optional[float] = None) -> List[str]:
        """List every tag known to the service."""
        body = await self._get("GetAllTags", "/api/v2/torrents/tags", timeout=timeout)
        return decode_json(body, List[str], "GetAllTags")

    async def torrents_get_tags(self, hashes: HashesLike, *, timeout: Optional[float] = None) -> List[str]:
        """Collect the distinct tags of the given torrents, in first-seen order."""
        hash_list = [hashes] if isinstance(hashes, str) else list(hashes)
        torrents = await self.torrents_info(TorrentsInfoParams(hashes=hash_list), timeout=timeout)

        tags: Dict[str, None] = {}
        for torrent in torrents:
            for tag in torrent.tags:
                tags.setdefault(tag, None)
        return list(tags)

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def sync_maindata(self, rid: int = 0, *, timeout: Optional[float] = None) -> MainData:
        """Get the main data snapshot changed since response id ``rid``."""
        body = await self._get("SyncMainData", "/api/v2/sync/maindata", {"rid": rid}, timeout)
        return decode_json(body, MainData, "SyncMainData")

    async def sync_torrent_peers(
        self,
        torrent_hash: str,
        rid: int = 0,
        *,
        timeout: Optional[float] = None,
    ) -> TorrentPeers:
        """Get the peers of one torrent changed since response id ``rid``."""
        body = await self._get(
            "SyncTorrentPeers",
            "/api/v2/sync/torrentPeers",
            [("rid", rid), ("hash", torrent_hash)],
            timeout,
        )
        return decode_json(body, TorrentPeers, "SyncTorrentPeers")
