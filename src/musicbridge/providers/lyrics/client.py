"""
LRCLIB lyrics client.

LRCLIB is keyless; lookups are by track + artist (+ album, duration).
Synced lyrics come as LRC text and are parsed into timed lines.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field, ValidationError

from musicbridge.core.errors import ProviderError
from musicbridge.core.logging import get_logger
from musicbridge.core.models import Lyrics, SyncedLine
from musicbridge.core.settings import AppSettings
from musicbridge.providers.base import require_text

logger = get_logger(__name__)

LRCLIB_API_URL = "https://lrclib.net/api"
PLATFORM = "lrclib"

_LRC_LINE_RE = re.compile(r"\[(\d{2}):(\d{2})\.(\d{2,3})\](.*)")


class LrclibRecord(BaseModel):
    id: Optional[int] = None
    track_name: Optional[str] = Field(None, alias="trackName")
    artist_name: Optional[str] = Field(None, alias="artistName")
    album_name: Optional[str] = Field(None, alias="albumName")
    duration: Optional[float] = None
    instrumental: bool = False
    plain_lyrics: Optional[str] = Field(None, alias="plainLyrics")
    synced_lyrics: Optional[str] = Field(None, alias="syncedLyrics")

    model_config = {"extra": "ignore", "populate_by_name": True}


def parse_lrc(content: Optional[str]) -> List[SyncedLine]:
    """
    "[mm:ss.xx]text" lines -> SyncedLine list sorted by time.

    Two-digit fractions are hundredths ("50" -> 500 ms). Lines that don't
    match are dropped.
    """
    if not content:
        return []

    lines: List[SyncedLine] = []
    for raw in content.split("\n"):
        m = _LRC_LINE_RE.match(raw.strip())
        if not m:
            continue
        minutes, seconds, fraction, text = m.groups()
        ms = int(fraction.ljust(3, "0"))
        lines.append(
            SyncedLine(
                time_ms=(int(minutes) * 60 + int(seconds)) * 1000 + ms,
                time_formatted=f"{minutes}:{seconds}",
                text=text.strip(),
            )
        )
    # sorted() is stable, so equal timestamps keep their source order
    return sorted(lines, key=lambda line: line.time_ms)


def current_line(
    lines: List[SyncedLine], position_ms: int
) -> Optional[Tuple[SyncedLine, Optional[SyncedLine], int]]:
    """Line being sung at `position_ms`: (current, next, index), or None before the first."""
    for i in range(len(lines) - 1, -1, -1):
        if position_ms >= lines[i].time_ms:
            nxt = lines[i + 1] if i + 1 < len(lines) else None
            return lines[i], nxt, i
    return None


def format_lyrics(record: LrclibRecord) -> Optional[Lyrics]:
    if not record.track_name or not record.artist_name:
        return None

    plain = [line.strip() for line in (record.plain_lyrics or "").split("\n")]
    return Lyrics(
        id=str(record.id) if record.id is not None else "",
        track_name=record.track_name,
        artist_name=record.artist_name,
        album_name=record.album_name or "",
        duration=record.duration or 0,
        instrumental=record.instrumental,
        plain_lyrics=[line for line in plain if line],
        synced_lyrics=parse_lrc(record.synced_lyrics),
    )


class LrclibClient:
    def __init__(
        self,
        base_url: str = LRCLIB_API_URL,
        *,
        timeout: float = 10.0,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: AppSettings, *, http: Optional[httpx.AsyncClient] = None) -> "LrclibClient":
        return cls(settings.lrclib_base_url, timeout=settings.http_timeout, http=http)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, path: str, params: dict) -> Optional[Any]:
        try:
            r = await self._http.get(f"{self._base_url}{path}", params=params)
        except httpx.HTTPError as e:
            raise ProviderError(PLATFORM, f"GET {path} failed: {e}") from e

        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise ProviderError(PLATFORM, f"GET {path} failed", http_status=r.status_code)
        return r.json()

    def _parse(self, data: Any) -> LrclibRecord:
        try:
            return LrclibRecord.model_validate(data)
        except ValidationError as e:
            raise ProviderError(PLATFORM, f"unexpected lyrics payload: {e}") from e

    @staticmethod
    def _params(track: str, artist: str, album: Optional[str]) -> dict:
        params = {
            "track_name": require_text(track, "track name"),
            "artist_name": require_text(artist, "artist name"),
        }
        if album:
            params["album_name"] = album
        return params

    async def get_lyrics(
        self,
        track: str,
        artist: str,
        album: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Optional[Lyrics]:
        """Exact lookup; None when LRCLIB has no record."""
        params = self._params(track, artist, album)
        if duration:
            params["duration"] = str(round(duration))

        data = await self._get("/get", params)
        if data is None:
            return None
        return format_lyrics(self._parse(data))

    async def search(self, track: str, artist: str, album: Optional[str] = None) -> Optional[List[Lyrics]]:
        """Fuzzy lookup; None when nothing matches."""
        data = await self._get("/search", self._params(track, artist, album))
        if not data or not isinstance(data, list):
            return None

        found = [format_lyrics(self._parse(item)) for item in data]
        results = [lyr for lyr in found if lyr is not None]
        return results or None
