"""
Locate (or fetch) the yt-dlp executable.

Resolution order:
1) `yt_dlp_path` if it points to a file or is found on PATH
2) a previously downloaded binary in `yt_dlp_bin_dir`
3) download the latest release asset from GitHub (if auto download is on)

Managed (downloaded) binaries get a best-effort update check every
`update_interval_days`.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import sys
import time
from pathlib import Path
from typing import Optional

import httpx

from musicbridge.core.errors import DelegateFailure
from musicbridge.core.logging import get_logger
from musicbridge.core.settings import AppSettings
from musicbridge.providers.base import ReadyGuard

logger = get_logger(__name__)

RELEASES_LATEST_URL = "https://api.github.com/repos/yt-dlp/yt-dlp/releases/latest"
DOWNLOAD_TIMEOUT_S = 30.0
_VERSION_TIMEOUT_S = 15.0


def platform_asset_name() -> str:
    if sys.platform == "win32":
        return "yt-dlp.exe"
    if sys.platform == "darwin":
        return "yt-dlp_macos"
    return "yt-dlp_linux"


class YtDlpBinary:
    def __init__(
        self,
        *,
        configured_path: str = "yt-dlp",
        bin_dir: Path,
        auto_download: bool = True,
        auto_update: bool = True,
        update_interval_days: int = 7,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._configured_path = configured_path
        self._bin_dir = bin_dir
        self._auto_download = auto_download
        self._auto_update = auto_update
        self._update_interval_s = update_interval_days * 86400
        self._http = http
        self._owns_http = http is None
        self._path: Optional[str] = None
        self._managed = False
        self._last_update_check = 0.0
        self._guard = ReadyGuard(self._locate, is_stale=self._update_due)

    @classmethod
    def from_settings(cls, settings: AppSettings, *, http: Optional[httpx.AsyncClient] = None) -> "YtDlpBinary":
        return cls(
            configured_path=settings.yt_dlp_path,
            bin_dir=settings.yt_dlp_bin_dir,
            auto_download=settings.yt_dlp_auto_download,
            auto_update=settings.yt_dlp_auto_update,
            update_interval_days=settings.yt_dlp_update_interval_days,
            http=http,
        )

    @property
    def managed_path(self) -> Path:
        return self._bin_dir / platform_asset_name()

    @property
    def path(self) -> Optional[str]:
        return self._path

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    def _update_due(self) -> bool:
        # Managed binaries are re-located (and update-checked) once the interval elapses
        return (
            self._managed
            and self._auto_update
            and time.time() - self._last_update_check >= self._update_interval_s
        )

    async def ensure(self) -> str:
        """Return an executable path, downloading yt-dlp on first use if needed."""
        await self._guard.ensure_ready()
        assert self._path is not None
        return self._path

    # -------------------------
    # Internal helpers
    # -------------------------

    async def _locate(self) -> None:
        explicit = Path(self._configured_path)
        if explicit.is_file():
            self._path = str(explicit)
            return

        found = shutil.which(self._configured_path)
        if found:
            self._path = found
            return

        managed = self.managed_path
        if managed.is_file():
            self._path = str(managed)
            self._managed = True
            if self._auto_update:
                await self._check_for_updates()
            return

        if not self._auto_download:
            raise DelegateFailure(f"yt-dlp not found ({self._configured_path!r}) and auto download is disabled")

        await self._download_latest()
        self._path = str(managed)
        self._managed = True
        self._last_update_check = time.time()

    async def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT_S, follow_redirects=True)
        return self._http

    async def _latest_release(self) -> dict:
        http = await self._client()
        r = await http.get(
            RELEASES_LATEST_URL,
            headers={"Accept": "application/vnd.github+json", "User-Agent": "musicbridge"},
            timeout=DOWNLOAD_TIMEOUT_S,
        )
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as e:
            raise DelegateFailure(f"unreadable yt-dlp release info: {e}") from e
        if not isinstance(data, dict):
            raise DelegateFailure("unreadable yt-dlp release info: expected a JSON object")
        return data

    async def _download_latest(self) -> None:
        logger.info("Downloading latest yt-dlp binary into %s", self._bin_dir)
        asset_name = platform_asset_name()
        try:
            release = await self._latest_release()
            asset = next((a for a in release.get("assets") or [] if a.get("name") == asset_name), None)
            if not asset or not asset.get("browser_download_url"):
                raise DelegateFailure(
                    f"yt-dlp asset {asset_name} not found in release {release.get('tag_name') or release.get('name')}"
                )
            http = await self._client()
            r = await http.get(asset["browser_download_url"], timeout=DOWNLOAD_TIMEOUT_S, follow_redirects=True)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DelegateFailure(f"yt-dlp download failed: {e}") from e

        target = self.managed_path
        tmp = target.with_suffix(".download")
        try:
            self._bin_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(r.content)
            if os.name != "nt":
                tmp.chmod(0o755)
            tmp.replace(target)
        except OSError as e:
            raise DelegateFailure(f"could not install yt-dlp into {self._bin_dir}: {e}") from e

    async def _installed_version(self, path: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            path,
            "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout=_VERSION_TIMEOUT_S)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return ""
        return out.decode("utf-8", "replace").strip()

    async def _check_for_updates(self) -> None:
        now = time.time()
        if self._last_update_check and now - self._last_update_check < self._update_interval_s:
            return
        self._last_update_check = now

        # Update checks never fail the caller; the existing binary keeps working
        try:
            release = await self._latest_release()
            latest = release.get("tag_name") or release.get("name") or ""
            current = await self._installed_version(str(self.managed_path))
            if not current or (latest and latest not in current):
                logger.info("Updating yt-dlp %s -> %s", current or "(unknown)", latest)
                await self._download_latest()
        except (httpx.HTTPError, DelegateFailure, OSError) as e:
            logger.debug("yt-dlp update check failed: %s", e)
