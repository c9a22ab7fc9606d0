from __future__ import annotations

import asyncio
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

from musicbridge.core.errors import DelegateFailure
from musicbridge.providers.youtube.ytdlp_binary import RELEASES_LATEST_URL, YtDlpBinary, platform_asset_name

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="managed yt-dlp stand-ins are /bin/sh scripts")

ASSET_URL = "https://github.test/yt-dlp/releases/download/asset"


def _script(version: str) -> bytes:
    return f"#!/bin/sh\necho {version}\n".encode()


class ReleaseServer:
    """Serves the latest-release document and the platform asset."""

    def __init__(self, tag: str = "2026.02.02", *, assets: Optional[List[Dict[str, Any]]] = None) -> None:
        self.tag = tag
        self.assets = assets if assets is not None else [
            {"name": platform_asset_name(), "browser_download_url": ASSET_URL},
            {"name": "yt-dlp.tar.gz", "browser_download_url": "https://github.test/other"},
        ]
        self.release_status = 200
        self.release_body: Optional[bytes] = None
        self.release_calls = 0
        self.asset_calls = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == RELEASES_LATEST_URL:
            self.release_calls += 1
            # Let concurrent callers pile up on the guard
            await asyncio.sleep(0.01)
            if self.release_body is not None:
                return httpx.Response(self.release_status, content=self.release_body)
            return httpx.Response(self.release_status, json={"tag_name": self.tag, "assets": self.assets})
        if str(request.url) == ASSET_URL:
            self.asset_calls += 1
            return httpx.Response(200, content=_script(self.tag))
        return httpx.Response(404)


def _binary(tmp_path: Path, server: ReleaseServer, *, bin_dir: Optional[Path] = None, **kwargs) -> YtDlpBinary:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return YtDlpBinary(
        configured_path=str(tmp_path / "not-installed" / "yt-dlp"),
        bin_dir=bin_dir or tmp_path / "bin",
        http=http,
        **kwargs,
    )


def _install(binary: YtDlpBinary, version: str) -> Path:
    target = binary.managed_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(_script(version))
    target.chmod(0o755)
    return target


# ---------------------------
# First-use download
# ---------------------------

@pytest.mark.asyncio
async def test_downloads_release_asset_when_missing(tmp_path: Path) -> None:
    server = ReleaseServer()
    binary = _binary(tmp_path, server)

    path = await binary.ensure()

    target = binary.managed_path
    assert path == str(target)
    assert target.read_bytes() == _script("2026.02.02")
    assert stat.S_IMODE(target.stat().st_mode) == 0o755
    assert not list(target.parent.glob("*.download"))
    assert (server.release_calls, server.asset_calls) == (1, 1)


@pytest.mark.asyncio
async def test_concurrent_first_use_downloads_once(tmp_path: Path) -> None:
    server = ReleaseServer()
    binary = _binary(tmp_path, server)

    paths = await asyncio.gather(*(binary.ensure() for _ in range(5)))

    assert set(paths) == {str(binary.managed_path)}
    assert (server.release_calls, server.asset_calls) == (1, 1)


@pytest.mark.asyncio
async def test_release_without_platform_asset(tmp_path: Path) -> None:
    server = ReleaseServer(assets=[{"name": "yt-dlp.tar.gz", "browser_download_url": "https://github.test/other"}])
    binary = _binary(tmp_path, server)

    with pytest.raises(DelegateFailure, match="not found in release 2026.02.02"):
        await binary.ensure()
    assert server.asset_calls == 0
    assert not binary.managed_path.exists()


@pytest.mark.asyncio
async def test_release_lookup_http_error(tmp_path: Path) -> None:
    server = ReleaseServer()
    server.release_status = 503
    binary = _binary(tmp_path, server)

    with pytest.raises(DelegateFailure, match="download failed"):
        await binary.ensure()


@pytest.mark.asyncio
async def test_unreadable_release_document(tmp_path: Path) -> None:
    server = ReleaseServer()
    server.release_body = b"<html>rate limited</html>"
    binary = _binary(tmp_path, server)

    with pytest.raises(DelegateFailure, match="unreadable yt-dlp release info"):
        await binary.ensure()

    server.release_body = b"[]"
    with pytest.raises(DelegateFailure, match="expected a JSON object"):
        await binary.ensure()


@pytest.mark.asyncio
async def test_unwritable_bin_dir_is_delegate_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    server = ReleaseServer()
    binary = _binary(tmp_path, server, bin_dir=blocker / "bin")

    with pytest.raises(DelegateFailure, match="could not install yt-dlp"):
        await binary.ensure()


# ---------------------------
# Updates of the managed copy
# ---------------------------

@pytest.mark.asyncio
async def test_managed_binary_up_to_date(tmp_path: Path) -> None:
    server = ReleaseServer(tag="2026.02.02")
    binary = _binary(tmp_path, server)
    _install(binary, "2026.02.02")

    assert await binary.ensure() == str(binary.managed_path)
    assert (server.release_calls, server.asset_calls) == (1, 0)


@pytest.mark.asyncio
async def test_update_check_installs_newer_release(tmp_path: Path) -> None:
    server = ReleaseServer(tag="2026.02.02")
    binary = _binary(tmp_path, server)
    target = _install(binary, "2025.11.30")

    await binary.ensure()

    assert server.asset_calls == 1
    assert target.read_bytes() == _script("2026.02.02")


@pytest.mark.asyncio
async def test_update_check_repeats_after_interval(tmp_path: Path) -> None:
    server = ReleaseServer(tag="2026.02.02")
    binary = _binary(tmp_path, server, update_interval_days=7)
    _install(binary, "2026.02.02")

    await binary.ensure()
    await binary.ensure()
    assert server.release_calls == 1

    # Pretend the last check happened eight days ago
    binary._last_update_check -= 8 * 86400
    await binary.ensure()
    assert server.release_calls == 2

    await binary.ensure()
    assert server.release_calls == 2


@pytest.mark.asyncio
async def test_fresh_download_waits_for_interval(tmp_path: Path) -> None:
    server = ReleaseServer()
    binary = _binary(tmp_path, server)

    await binary.ensure()
    await binary.ensure()

    assert (server.release_calls, server.asset_calls) == (1, 1)


@pytest.mark.asyncio
async def test_failed_update_check_keeps_existing_binary(tmp_path: Path) -> None:
    server = ReleaseServer()
    server.release_status = 500
    binary = _binary(tmp_path, server)
    target = _install(binary, "2025.11.30")

    assert await binary.ensure() == str(target)
    assert target.read_bytes() == _script("2025.11.30")


@pytest.mark.asyncio
async def test_auto_update_disabled(tmp_path: Path) -> None:
    server = ReleaseServer()
    binary = _binary(tmp_path, server, auto_update=False)
    _install(binary, "2025.11.30")

    await binary.ensure()
    binary._last_update_check -= 30 * 86400
    await binary.ensure()

    assert server.release_calls == 0


@pytest.mark.asyncio
async def test_configured_binary_is_never_updated(tmp_path: Path, fake_ytdlp) -> None:
    script = fake_ytdlp("echo 2020.01.01")
    server = ReleaseServer()
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    binary = YtDlpBinary(configured_path=str(script), bin_dir=tmp_path / "bin", http=http, update_interval_days=0)

    assert await binary.ensure() == str(script)
    assert await binary.ensure() == str(script)
    assert server.release_calls == 0
