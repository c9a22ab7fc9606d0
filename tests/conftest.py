from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Callable

import pytest

from musicbridge.core.settings import AppSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("MUSICBRIDGE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(yt_dlp_bin_dir=tmp_path / "bin", yt_dlp_auto_download=False)


@pytest.fixture
def fake_ytdlp(tmp_path: Path) -> Callable[[str], Path]:
    """Write a /bin/sh script standing in for the yt-dlp executable."""
    if sys.platform == "win32":
        pytest.skip("fake yt-dlp scripts need a POSIX shell")

    def write(body: str) -> Path:
        script = tmp_path / "yt-dlp"
        script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return write
