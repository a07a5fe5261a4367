"""
Response models for the qBittorrent Web API.

Pydantic models mirroring the JSON objects returned by the service. Wire
names are mapped to snake_case fields through aliases; fields the service
adds in newer versions are ignored, and fields it omits keep their
defaults. Two fields need work at decode time:

- Unix-second timestamps become aware UTC datetimes, with -1 ("unknown")
  mapped to None rather than the epoch.
- The comma-joined ``tags`` string becomes a list; an empty string is an
  empty list.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

UNKNOWN_TIMESTAMP = -1


def unix_time_or_none(value: Any) -> Optional[datetime]:
    """Convert Unix seconds to an aware datetime; -1 and null mean unknown."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise ValueError("timestamp must be an integer")
    seconds = int(value)
    if seconds == UNKNOWN_TIMESTAMP:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp {seconds} out of range") from e


def split_tags(value: Any) -> list[str]:
    """Split the service's comma-joined tag string."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(tag) for tag in value]
    return [tag.strip() for tag in str(value).split(",")]


def tier_or_unknown(value: Any) -> int:
    # DHT/PeX/LSD pseudo-trackers report an empty tier on older versions
    if value is None or value == "":
        return -1
    return value


Timestamp = Annotated[Optional[datetime], BeforeValidator(unix_time_or_none)]
TagList = Annotated[list[str], BeforeValidator(split_tags)]


class APIModel(BaseModel):
    """Base for all response models."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TorrentInfo(APIModel):
    """One entry of /api/v2/torrents/info (and of sync/maindata torrents)."""

    # Identification
    hash: str = ""
    name: str = ""
    magnet_uri: str = ""
    category: str = ""
    tags: TagList = Field(default_factory=list)
    tracker: str = ""
    state: str = ""

    # Paths
    save_path: str = ""
    content_path: str = ""

    # Sizes (bytes)
    size: int = 0
    total_size: int = 0
    amount_left: int = 0
    completed: int = 0
    downloaded: int = 0
    downloaded_session: int = 0
    uploaded: int = 0
    uploaded_session: int = 0

    # Transfer
    progress: float = 0.0
    availability: float = 0.0
    dl_speed: int = Field(0, alias="dlspeed")
    up_speed: int = Field(0, alias="upspeed")
    dl_limit: int = 0
    up_limit: int = 0
    eta: int = 0
    ratio: float = 0.0
    ratio_limit: float = 0.0
    max_ratio: float = 0.0
    priority: int = 0

    # Swarm
    num_complete: int = 0
    num_incomplete: int = 0
    num_leechs: int = 0
    num_seeds: int = 0

    # Times (Unix seconds, as sent by the service)
    added_on: int = 0
    completion_on: int = 0
    last_activity: int = 0
    seen_complete: int = 0
    seeding_time: int = 0
    seeding_time_limit: int = 0
    max_seeding_time: int = 0
    time_active: int = 0

    # Flags
    auto_tmm: bool = False
    force_start: bool = False
    super_seeding: bool = False
    is_private: bool = Field(False, validation_alias=AliasChoices("isPrivate", "is_private", "private"))
    sequential_download: bool = Field(False, validation_alias=AliasChoices("seq_dl", "sequential_download"))
    first_last_piece_prio: bool = Field(False, validation_alias=AliasChoices("f_l_piece_prio", "first_last_piece_prio"))


class TorrentProperties(APIModel):
    """Generic properties of one torrent (/api/v2/torrents/properties)."""

    hash: str = ""
    infohash_v1: str = ""
    infohash_v2: str = ""
    name: str = ""
    comment: str = ""
    created_by: str = ""
    save_path: str = ""
    download_path: str = ""

    addition_date: Timestamp = None
    completion_date: Timestamp = None
    creation_date: Timestamp = None
    last_seen: Timestamp = None

    dl_limit: int = 0
    dl_speed: int = 0
    dl_speed_avg: int = 0
    up_limit: int = 0
    up_speed: int = 0
    up_speed_avg: int = 0
    eta: int = 0

    nb_connections: int = 0
    nb_connections_limit: int = 0
    peers: int = 0
    peers_total: int = 0
    seeds: int = 0
    seeds_total: int = 0

    piece_size: int = 0
    pieces_have: int = 0
    pieces_num: int = 0

    popularity: float = 0.0
    share_ratio: float = 0.0
    reannounce: int = 0
    seeding_time: int = 0
    time_elapsed: int = 0

    total_downloaded: int = 0
    total_downloaded_session: int = 0
    total_size: int = 0
    total_uploaded: int = 0
    total_uploaded_session: int = 0
    total_wasted: int = 0

    has_metadata: bool = False
    is_private: bool = Field(False, validation_alias=AliasChoices("is_private", "isPrivate"))
    private: bool = False


class TrackerInfo(APIModel):
    """One tracker of a torrent (/api/v2/torrents/trackers)."""

    url: str = ""
    status: int = 0
    tier: Annotated[int, BeforeValidator(tier_or_unknown)] = -1
    num_peers: int = 0
    num_seeds: int = 0
    num_leeches: int = 0
    num_downloaded: int = 0
    msg: str = ""


class Category(APIModel):
    """A torrent category."""

    name: str = ""
    save_path: str = Field("", validation_alias=AliasChoices("savePath", "save_path"))


class ServerState(APIModel):
    """Global transfer state carried by sync/maindata."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    alltime_dl: int = 0
    alltime_ul: int = 0
    average_time_queue: int = 0
    connection_status: str = ""
    dht_nodes: int = 0
    dl_info_data: int = 0
    dl_info_speed: int = 0
    dl_rate_limit: int = 0
    free_space_on_disk: int = 0
    global_ratio: str = ""
    queued_io_jobs: int = 0
    queueing: bool = False
    read_cache_hits: str = ""
    read_cache_overload: str = ""
    refresh_interval: int = 0
    total_buffers_size: int = 0
    total_peer_connections: int = 0
    total_queued_size: int = 0
    total_wasted_session: int = 0
    up_info_data: int = 0
    up_info_speed: int = 0
    up_rate_limit: int = 0
    use_alt_speed_limits: bool = False
    use_subcategories: bool = False
    write_cache_overload: str = ""


class MainData(APIModel):
    """Incremental snapshot returned by /api/v2/sync/maindata."""

    rid: int = 0
    full_update: bool = False
    torrents: dict[str, TorrentInfo] = Field(default_factory=dict)
    torrents_removed: list[str] = Field(default_factory=list)
    categories: dict[str, Category] = Field(default_factory=dict)
    categories_removed: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    tags_removed: list[str] = Field(default_factory=list)
    trackers: dict[str, list[str]] = Field(default_factory=dict)
    server_state: ServerState = Field(default_factory=ServerState)


class TorrentPeer(APIModel):
    """One peer of a torrent."""

    ip: str = ""
    port: int = 0
    client: str = ""
    peer_id_client: str = ""
    connection: str = ""
    country: str = ""
    country_code: str = ""
    flags: str = ""
    flags_desc: str = ""
    files: str = ""
    dl_speed: int = 0
    up_speed: int = 0
    downloaded: int = 0
    uploaded: int = 0
    progress: float = 0.0
    relevance: float = 0.0


class TorrentPeers(APIModel):
    """Incremental peer snapshot returned by /api/v2/sync/torrentPeers."""

    rid: int = 0
    full_update: bool = False
    show_flags: bool = False
    peers: dict[str, TorrentPeer] = Field(default_factory=dict)
    peers_removed: list[str] = Field(default_factory=list)
