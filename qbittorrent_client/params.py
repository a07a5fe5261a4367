"""
Parameter objects for list and add requests.
Only values that differ from their unset default are sent; the service
treats a missing field differently from an explicit false or zero.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from .transport import MultipartFile

HashesLike = Union[str, Iterable[str]]


def join_values(values: HashesLike, separator: str) -> str:
    """Join hashes or tags; a pre-joined string is passed through."""
    if isinstance(values, str):
        return values
    return separator.join(values)


def join_hashes(hashes: HashesLike) -> str:
    return join_values(hashes, "|")


def join_tags(tags: HashesLike) -> str:
    return join_values(tags, ",")


def format_bool(value: bool) -> str:
    return "true" if value else "false"


@dataclass
class TorrentsInfoParams:
    """Filters for /api/v2/torrents/info."""
    filter: str = ""
    category: str = ""
    tag: str = ""
    sort: str = ""
    reverse: bool = False
    limit: int = 0
    offset: int = 0
    hashes: List[str] = field(default_factory=list)

    def to_query(self) -> List[Tuple[str, str]]:
        query = []
        if self.filter:
            query.append(("filter", self.filter))
        if self.category:
            query.append(("category", self.category))
        if self.tag:
            query.append(("tag", self.tag))
        if self.sort:
            query.append(("sort", self.sort))
        if self.reverse:
            query.append(("reverse", "true"))
        if self.limit > 0:
            query.append(("limit", str(self.limit)))
        if self.offset != 0:
            query.append(("offset", str(self.offset)))
        if self.hashes:
            query.append(("hashes", join_hashes(self.hashes)))
        return query


@dataclass
class TorrentsAddParams:
    """
    Options for /api/v2/torrents/add.

    Attributes:
        torrents: Raw .torrent file contents
        urls: Magnet links or HTTP URLs
        save_path: Download folder
        cookie: Cookie sent when the service fetches a .torrent URL
        category: Category for the torrent
        tags: Comma separated tags
        skip_checking: Skip hash checking
        paused: Add in the paused state
        root_folder: Create the root folder; None leaves the service default
        rename: New torrent name
        up_limit: Upload limit in bytes/second
        dl_limit: Download limit in bytes/second
        ratio_limit: Share ratio limit
        seeding_time_limit: Seeding time limit in minutes
        auto_tmm: Use Automatic Torrent Management
        sequential_download: Download pieces in order
        first_last_piece_prio: Prioritize first and last pieces
    """
    torrents: List[bytes] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    save_path: str = ""
    cookie: str = ""
    category: str = ""
    tags: str = ""
    skip_checking: bool = False
    paused: bool = False
    root_folder: Optional[bool] = None
    rename: str = ""
    up_limit: int = 0
    dl_limit: int = 0
    ratio_limit: float = 0.0
    seeding_time_limit: int = 0
    auto_tmm: bool = False
    sequential_download: bool = False
    first_last_piece_prio: bool = False

    def to_files(self) -> List[MultipartFile]:
        return [
            MultipartFile(name="torrents", filename=f"torrent{i}.torrent", data=data)
            for i, data in enumerate(self.torrents)
        ]

    def to_fields(self) -> List[Tuple[str, str]]:
        fields = [("urls", url) for url in self.urls]

        if self.save_path:
            fields.append(("savepath", self.save_path))
        if self.cookie:
            fields.append(("cookie", self.cookie))
        if self.category:
            fields.append(("category", self.category))
        if self.tags:
            fields.append(("tags", self.tags))
        if self.skip_checking:
            fields.append(("skip_checking", "true"))
        if self.paused:
            fields.append(("paused", "true"))
        if self.root_folder is not None:
            fields.append(("root_folder", format_bool(self.root_folder)))
        if self.rename:
            fields.append(("rename", self.rename))
        if self.up_limit > 0:
            fields.append(("upLimit", str(self.up_limit)))
        if self.dl_limit > 0:
            fields.append(("dlLimit", str(self.dl_limit)))
        if self.ratio_limit > 0:
            fields.append(("ratioLimit", f"{self.ratio_limit:.2f}"))
        if self.seeding_time_limit > 0:
            fields.append(("seedingTimeLimit", str(self.seeding_time_limit)))
        if self.auto_tmm:
            fields.append(("autoTMM", "true"))
        if self.sequential_download:
            fields.append(("sequentialDownload", "true"))
        if self.first_last_piece_prio:
            fields.append(("firstLastPiecePrio", "true"))
        return fields
