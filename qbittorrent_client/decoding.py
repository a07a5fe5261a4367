"""
Response Decoding for the qBittorrent client.
Maps raw response bytes onto the pydantic models in models.py.
"""

from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .exceptions import DecodeError


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


def decode_json(body: bytes, shape: Any, shape_name: str) -> Any:
    """
    Validate a JSON body against ``shape``.

    Args:
        body: Raw response body
        shape: A model class or typing construct such as list[TorrentInfo]
        shape_name: Name used in error messages

    Raises:
        DecodeError: if the body is empty, not JSON, or does not fit the shape
    """
    if not body or not body.strip():
        raise DecodeError(shape_name, "empty response body")
    try:
        return _adapter(shape).validate_json(body)
    except ValidationError as e:
        raise DecodeError(shape_name, str(e)) from e


def decode_text(body: bytes) -> str:
    """Decode a plain-text body such as a version string."""
    return body.decode("utf-8", errors="replace").strip()
