from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


# Load .env if present (safe no-op if missing)
load_dotenv()


def _expand_path(p: Optional[str]) -> Optional[Path]:
    if not p:
        return None
    return Path(os.path.expandvars(os.path.expanduser(p)))


def _parse_bool(v: Optional[str]) -> Optional[bool]:
    if v is None:
        return None
    s = v.strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    return None


def _load_yaml(config_file: Optional[Path]) -> dict:
    if not config_file or not config_file.exists():
        return {}
    with config_file.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class AppSettings(BaseModel):
    # Spotify (client credentials)
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_market: str = "VN"
    http_timeout: float = 10.0

    # YouTube Music
    ytmusic_auth_path: Optional[Path] = None
    ytmusic_language: str = "en"
    ytmusic_location: str = ""

    # yt-dlp
    yt_dlp_path: str = "yt-dlp"
    yt_dlp_bin_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "yt-dlp-bin")
    yt_dlp_auto_download: bool = True
    yt_dlp_auto_update: bool = True
    yt_dlp_update_interval_days: int = Field(7, ge=0)
    yt_dlp_args: List[str] = Field(default_factory=list)
    resolve_timeout: float = 120.0
    cookies_path: Optional[Path] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    proxy: Optional[str] = None

    # Lyrics
    lrclib_base_url: str = "https://lrclib.net/api"

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def has_spotify_credentials(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)


def load_settings(*, config_file: Optional[Path] = None, overrides: Optional[dict] = None) -> AppSettings:
    """
    Precedence: overrides > env vars > yaml config > defaults
    """
    data: dict = {}

    data.update(_load_yaml(config_file))

    # ENV (MUSICBRIDGE_*)
    env = {
        "spotify_client_id": os.getenv("MUSICBRIDGE_SPOTIFY_CLIENT_ID"),
        "spotify_client_secret": os.getenv("MUSICBRIDGE_SPOTIFY_CLIENT_SECRET"),
        "spotify_market": os.getenv("MUSICBRIDGE_SPOTIFY_MARKET"),
        "http_timeout": os.getenv("MUSICBRIDGE_HTTP_TIMEOUT"),
        "ytmusic_auth_path": os.getenv("MUSICBRIDGE_YTMUSIC_AUTH_PATH"),
        "ytmusic_language": os.getenv("MUSICBRIDGE_YTMUSIC_LANGUAGE"),
        "ytmusic_location": os.getenv("MUSICBRIDGE_YTMUSIC_LOCATION"),
        "yt_dlp_path": os.getenv("MUSICBRIDGE_YT_DLP_PATH"),
        "yt_dlp_bin_dir": os.getenv("MUSICBRIDGE_YT_DLP_BIN_DIR"),
        "yt_dlp_auto_download": os.getenv("MUSICBRIDGE_YT_DLP_AUTO_DOWNLOAD"),
        "yt_dlp_auto_update": os.getenv("MUSICBRIDGE_YT_DLP_AUTO_UPDATE"),
        "yt_dlp_update_interval_days": os.getenv("MUSICBRIDGE_YT_DLP_UPDATE_INTERVAL_DAYS"),
        "yt_dlp_args": os.getenv("MUSICBRIDGE_YT_DLP_ARGS"),
        "resolve_timeout": os.getenv("MUSICBRIDGE_RESOLVE_TIMEOUT"),
        "cookies_path": os.getenv("MUSICBRIDGE_COOKIES_PATH"),
        "user_agent": os.getenv("MUSICBRIDGE_USER_AGENT"),
        "referer": os.getenv("MUSICBRIDGE_REFERER"),
        "proxy": os.getenv("MUSICBRIDGE_PROXY"),
        "lrclib_base_url": os.getenv("MUSICBRIDGE_LRCLIB_BASE_URL"),
    }

    for k, v in env.items():
        if v is None or v == "":
            continue

        if k in {"ytmusic_auth_path", "yt_dlp_bin_dir", "cookies_path"}:
            data[k] = _expand_path(v)

        elif k in {"yt_dlp_auto_download", "yt_dlp_auto_update"}:
            b = _parse_bool(v)
            if b is not None:
                data[k] = b

        elif k == "yt_dlp_args":
            data[k] = v.split()

        else:
            data[k] = v

    # Explicit overrides
    if overrides:
        data.update(overrides)

    return AppSettings(**data)
