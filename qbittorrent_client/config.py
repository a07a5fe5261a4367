"""
Client configuration.
Settings are loaded from keyword arguments, the environment
(QBITTORRENT_* variables) or a .env file, and passed to the client
explicitly at construction time.
"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

SESSION_STRATEGIES = ("cookie_jar", "token")


class ClientSettings(BaseSettings):
    """Settings for one connection to a qBittorrent Web API."""

    # Remote service
    base_url: str = "http://localhost:8080"
    username: str = ""
    password: str = ""

    # Session handling
    session_strategy: Literal["cookie_jar", "token"] = "cookie_jar"
    session_cookie_name: str = "SID"
    login_failure_marker: str = "Fails."

    # HTTP settings
    request_timeout: Optional[float] = 30.0  # None disables the client-wide deadline
    verify_ssl: bool = True

    # Logging settings (used by logging_config.setup_logging)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = "text"  # "text" or "json"

    model_config = SettingsConfigDict(
        env_prefix="QBITTORRENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)
