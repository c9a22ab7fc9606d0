"""
YouTube Music adapter backed by ytmusicapi.

ytmusicapi is synchronous; every call runs in a worker thread so the event
loop never blocks. The YTMusic object is created lazily, once, even when the
first calls arrive concurrently.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any, Callable, Collection, Dict, List, Optional

from pydantic import ValidationError
from ytmusicapi import YTMusic
from ytmusicapi.exceptions import YTMusicError, YTMusicServerError

from musicbridge.core.errors import ProviderError
from musicbridge.core.logging import get_logger
from musicbridge.core.models import (
    Album,
    Artist,
    Platform,
    Playlist,
    SearchKind,
    SearchResults,
    Track,
    Video,
)
from musicbridge.core.settings import AppSettings
from musicbridge.providers.base import ReadyGuard, require_kinds, require_text
from musicbridge.providers.youtube import normalize
from musicbridge.providers.youtube.payloads import (
    YtAlbum,
    YtArtist,
    YtPlaylist,
    YtSong,
    YtVideoDetails,
    YtWatchTrack,
)

logger = get_logger(__name__)

DEFAULT_SEARCH_LIMIT = 20
PLAYLIST_PAGE_LIMIT = 100

_SEARCH_FILTERS = {
    SearchKind.track: "songs",
    SearchKind.video: "videos",
    SearchKind.album: "albums",
    SearchKind.artist: "artists",
    SearchKind.playlist: "playlists",
}

_RESULT_TYPES = {
    "song": SearchKind.track,
    "video": SearchKind.video,
    "album": SearchKind.album,
    "single": SearchKind.album,
    "ep": SearchKind.album,
    "artist": SearchKind.artist,
    "playlist": SearchKind.playlist,
}

_HTTP_STATUS_RE = re.compile(r"HTTP (\d{3})")


def _status_of(exc: Exception) -> Optional[int]:
    m = _HTTP_STATUS_RE.search(str(exc))
    return int(m.group(1)) if m else None


class YouTubeMusicAdapter:
    def __init__(
        self,
        *,
        auth_path: Optional[Path] = None,
        language: str = "en",
        location: str = "",
        factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._auth_path = auth_path
        self._language = language
        self._location = location
        self._factory = factory or self._default_factory
        self._api: Any = None
        self._session = ReadyGuard(self._initialize)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "YouTubeMusicAdapter":
        return cls(
            auth_path=settings.ytmusic_auth_path,
            language=settings.ytmusic_language,
            location=settings.ytmusic_location,
        )

    @property
    def platform(self) -> Platform:
        return Platform.youtube

    async def aclose(self) -> None:
        self._api = None

    # -------------------------
    # Session
    # -------------------------

    def _default_factory(self) -> YTMusic:
        auth = None
        if self._auth_path is not None:
            if self._auth_path.exists():
                auth = str(self._auth_path)
            else:
                logger.warning("YouTube Music auth file not found at %s, continuing anonymously", self._auth_path)
        return YTMusic(auth=auth, language=self._language, location=self._location)

    async def _initialize(self) -> None:
        logger.debug("Initializing YouTube Music session")
        try:
            self._api = await asyncio.to_thread(self._factory)
        except (YTMusicError, OSError) as e:
            raise ProviderError(self.platform.value, f"session setup failed: {e}") from e

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """
        Run one ytmusicapi call in a worker thread.

        Returns None for not-found style failures (404, missing content),
        raises ProviderError for everything else.
        """
        await self._session.ensure_ready()
        fn = getattr(self._api, method)
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except YTMusicServerError as e:
            status = _status_of(e)
            if status == 404:
                return None
            raise ProviderError(self.platform.value, f"{method} failed: {e}", http_status=status) from e
        except (KeyError, IndexError) as e:
            # ytmusicapi parses by position; unknown ids yield responses without the expected keys
            logger.debug("%s%r returned no usable content: %r", method, args, e)
            return None
        except (TypeError, AttributeError, ValueError) as e:
            # Parser walked into a layout it doesn't know (often a None where a dict was expected)
            raise ProviderError(self.platform.value, f"{method} returned an unexpected layout: {e!r}") from e
        except (YTMusicError, OSError) as e:
            raise ProviderError(self.platform.value, f"{method} failed: {e}") from e

    def _parse(self, model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProviderError(self.platform.value, f"unexpected {model.__name__} payload: {e}") from e

    # -------------------------
    # Fetch
    # -------------------------

    async def fetch_track(self, video_id: str) -> Optional[Track]:
        video_id = require_text(video_id, "video id")
        data = await self._call("get_watch_playlist", videoId=video_id, limit=1)
        tracks = (data or {}).get("tracks") or []
        if not tracks:
            return None
        return normalize.watch_to_track(self._parse(YtWatchTrack, tracks[0]))

    async def fetch_video(self, video_id: str) -> Optional[Video]:
        video_id = require_text(video_id, "video id")
        data = await self._call("get_song", video_id)
        details = (data or {}).get("videoDetails")
        if not details:
            return None
        return normalize.details_to_video(self._parse(YtVideoDetails, details))

    async def fetch_album(self, browse_id: str) -> Optional[Album]:
        browse_id = require_text(browse_id, "album browse id")
        data = await self._call("get_album", browse_id)
        if not data:
            return None
        return normalize.to_album(self._parse(YtAlbum, data), browse_id=browse_id)

    async def fetch_playlist(self, playlist_id: str) -> Optional[Playlist]:
        playlist_id = require_text(playlist_id, "playlist id")
        data = await self._call("get_playlist", playlist_id, limit=PLAYLIST_PAGE_LIMIT)
        if not data:
            return None
        data = {"id": playlist_id, **data}
        return normalize.to_playlist(self._parse(YtPlaylist, data))

    async def fetch_artist(self, channel_id: str) -> Optional[Artist]:
        channel_id = require_text(channel_id, "channel id")
        data = await self._call("get_artist", channel_id)
        if not data:
            return None
        data = {"channelId": channel_id, **data}
        return normalize.to_artist(self._parse(YtArtist, data))

    # -------------------------
    # Search
    # -------------------------

    async def _search_kind(self, query: str, kind: SearchKind, limit: int) -> List[Any]:
        rows = await self._call("search", query, filter=_SEARCH_FILTERS[kind], limit=limit) or []
        return [self._convert(kind, row) for row in rows]

    def _convert(self, kind: SearchKind, row: Dict[str, Any]) -> Any:
        if kind is SearchKind.track:
            return normalize.to_track(self._parse(YtSong, row))
        if kind is SearchKind.video:
            return normalize.to_video(self._parse(YtSong, row))
        if kind is SearchKind.album:
            return normalize.to_album(self._parse(YtAlbum, row))
        if kind is SearchKind.artist:
            return normalize.to_artist(self._parse(YtArtist, row))
        return normalize.to_playlist(self._parse(YtPlaylist, row))

    async def search(
        self,
        query: str,
        kinds: Collection[SearchKind | str] = (SearchKind.track,),
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
    ) -> SearchResults:
        """
        One filtered ytmusicapi search per requested kind.

        YouTube reports no match counts, so totals are the list lengths.
        `offset` is accepted for contract parity; ytmusicapi has no paging.
        """
        query = require_text(query, "search query")
        wanted = sorted(require_kinds(kinds), key=lambda k: k.value)

        found = await asyncio.gather(*(self._search_kind(query, k, limit) for k in wanted))
        return _bucket(dict(zip(wanted, found)))

    async def search_all(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> SearchResults:
        """Unfiltered search, bucketed by the result type YouTube reports."""
        query = require_text(query, "search query")
        rows = await self._call("search", query, limit=limit) or []
        buckets: Dict[SearchKind, List[Any]] = {}
        for row in rows:
            kind = _RESULT_TYPES.get(str(row.get("resultType", "")).lower())
            if kind is None:
                continue
            buckets.setdefault(kind, []).append(self._convert(kind, row))
        return _bucket(buckets)

    async def search_tracks(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0) -> List[Track]:
        return (await self.search(query, [SearchKind.track], limit=limit, offset=offset)).tracks

    async def search_videos(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0) -> List[Video]:
        return (await self.search(query, [SearchKind.video], limit=limit, offset=offset)).videos

    async def search_albums(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0) -> List[Album]:
        return (await self.search(query, [SearchKind.album], limit=limit, offset=offset)).albums

    async def search_artists(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0) -> List[Artist]:
        return (await self.search(query, [SearchKind.artist], limit=limit, offset=offset)).artists

    async def search_playlists(
        self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[Playlist]:
        return (await self.search(query, [SearchKind.playlist], limit=limit, offset=offset)).playlists


def _bucket(found: Dict[SearchKind, List[Any]]) -> SearchResults:
    fields: Dict[str, Any] = {}
    for kind, items in found.items():
        fields[f"{kind.value}s"] = items
        fields[f"{kind.value}s_total"] = len(items)
    return SearchResults(**fields)
