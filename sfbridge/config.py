"""Runtime configuration for the bridge.

Values come from environment variables prefixed with ``SFBRIDGE_`` (or a
local ``.env``), validated by pydantic-settings.
"""

from __future__ import annotations

import os
import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "sfbridge"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "sfbridge"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "sfbridge"
    return Path.home() / ".config" / "sfbridge"


class BridgeSettings(BaseSettings):
    """Central settings shared by the resolver, SOAP client and tools."""

    model_config = SettingsConfigDict(
        env_prefix="SFBRIDGE_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    api_version: str = Field(
        default="62.0",
        pattern=r"^\d+\.\d$",
        description="Platform API version used for REST, SOAP and package.xml.",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout per HTTP request (seconds).",
    )
    deploy_poll_attempts: int = Field(
        default=30,
        ge=1,
        description="Maximum number of checkDeployStatus calls before giving up.",
    )
    deploy_poll_interval_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before each deploy status check (seconds).",
    )
    cookie_file: Path | None = Field(
        default=None,
        description="Netscape/Mozilla cookies.txt export holding the browser's session cookies.",
    )
    stored_session_file: Path = Field(
        default_factory=lambda: get_user_config_dir() / "stored_session.json",
        description="Where a page observer may have reported its session id.",
    )
    page_url: str | None = Field(
        default=None,
        description="URL of the page the user is viewing, when a call does not pass one.",
    )
    log_level: str = Field(default="INFO", min_length=1)


@lru_cache(maxsize=1)
def get_settings() -> BridgeSettings:
    return BridgeSettings()
