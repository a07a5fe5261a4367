"""
Async client for the qBittorrent Web API.
"""

from .client import QBittorrentClient
from .config import ClientSettings
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    DecodeError,
    QBittorrentError,
    ReauthenticationError,
    RequestTimeoutError,
    TransportError,
)
from .logging_config import LogContext, setup_logging
from .models import (
    Category,
    MainData,
    ServerState,
    TorrentInfo,
    TorrentPeer,
    TorrentPeers,
    TorrentProperties,
    TrackerInfo,
)
from .params import TorrentsAddParams, TorrentsInfoParams
from .session import CookieJarSession, TokenSession

__version__ = "0.1.0"

__all__ = [
    "QBittorrentClient",
    "ClientSettings",
    "QBittorrentError",
    "ConfigurationError",
    "TransportError",
    "RequestTimeoutError",
    "AuthenticationError",
    "ReauthenticationError",
    "APIError",
    "DecodeError",
    "LogContext",
    "setup_logging",
    "Category",
    "MainData",
    "ServerState",
    "TorrentInfo",
    "TorrentPeer",
    "TorrentPeers",
    "TorrentProperties",
    "TrackerInfo",
    "TorrentsAddParams",
    "TorrentsInfoParams",
    "CookieJarSession",
    "TokenSession",
]
