from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError
from rich.logging import RichHandler

from musicbridge.core.logging import get_logger, setup_logging
from musicbridge.core.settings import AppSettings, load_settings


def test_defaults() -> None:
    s = load_settings()
    assert s.spotify_market == "VN"
    assert s.yt_dlp_path == "yt-dlp"
    assert s.resolve_timeout == 120.0
    assert s.yt_dlp_update_interval_days == 7
    assert s.lrclib_base_url == "https://lrclib.net/api"
    assert s.has_spotify_credentials is False


def test_precedence_overrides_env_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "musicbridge.yaml"
    config.write_text(
        "spotify_market: US\nytmusic_language: de\nresolve_timeout: 30\nspotify_client_id: from-yaml\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MUSICBRIDGE_SPOTIFY_MARKET", "GB")
    monkeypatch.setenv("MUSICBRIDGE_SPOTIFY_CLIENT_SECRET", "from-env")

    s = load_settings(config_file=config, overrides={"resolve_timeout": 5})

    assert s.spotify_market == "GB"
    assert s.ytmusic_language == "de"
    assert s.resolve_timeout == 5
    assert s.has_spotify_credentials is True


def test_env_parsing(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MUSICBRIDGE_YT_DLP_ARGS", "--geo-bypass  --sleep-requests 1")
    monkeypatch.setenv("MUSICBRIDGE_YT_DLP_AUTO_DOWNLOAD", "off")
    monkeypatch.setenv("MUSICBRIDGE_YT_DLP_AUTO_UPDATE", "maybe")
    monkeypatch.setenv("MUSICBRIDGE_COOKIES_PATH", str(tmp_path / "cookies.txt"))
    monkeypatch.setenv("MUSICBRIDGE_HTTP_TIMEOUT", "")

    s = load_settings()

    assert s.yt_dlp_args == ["--geo-bypass", "--sleep-requests", "1"]
    assert s.yt_dlp_auto_download is False
    # Unparsable booleans fall back to the default
    assert s.yt_dlp_auto_update is True
    assert s.cookies_path == tmp_path / "cookies.txt"
    assert s.http_timeout == 10.0


def test_missing_config_file_is_ignored(tmp_path: Path) -> None:
    assert load_settings(config_file=tmp_path / "nope.yaml").spotify_market == "VN"


def test_settings_are_frozen_and_strict() -> None:
    s = AppSettings()
    with pytest.raises(ValidationError):
        s.spotify_market = "US"
    with pytest.raises(ValidationError):
        AppSettings(unknown_option=True)


def test_setup_logging_level() -> None:
    root = logging.getLogger()
    before = root.level
    try:
        setup_logging(level="debug")
        assert root.level == logging.DEBUG
        assert get_logger("musicbridge.test").getEffectiveLevel() == logging.DEBUG
    finally:
        root.setLevel(before)


@pytest.mark.parametrize("use_rich, handler_type", [(True, RichHandler), (False, logging.StreamHandler)])
def test_setup_logging_installs_one_handler(use_rich: bool, handler_type: type) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    try:
        setup_logging(level="warning", use_rich=use_rich)
        setup_logging(level="info", use_rich=use_rich)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], handler_type)
        assert root.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
