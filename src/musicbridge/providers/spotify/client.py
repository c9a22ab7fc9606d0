"""
Spotify Web API adapter (client-credentials flow).

Design notes:
- Token is fetched lazily on first use and renewed when it is about to expire.
- A 401 triggers exactly one token refresh + one retry of the same request.
- 404 on a fetch means "not found" (None); any other failure is a ProviderError.
"""

from __future__ import annotations

import time
from typing import Any, Collection, List, Optional

import httpx
from pydantic import ValidationError

from musicbridge.core.errors import InvalidArgument, ProviderError
from musicbridge.core.logging import get_logger
from musicbridge.core.models import Album, Artist, Platform, Playlist, SearchKind, SearchResults, Track
from musicbridge.core.settings import AppSettings
from musicbridge.providers.base import ReadyGuard, require_kinds, require_text
from musicbridge.providers.spotify import normalize
from musicbridge.providers.spotify.payloads import (
    SpAlbum,
    SpArtist,
    SpPlaylist,
    SpSearchResponse,
    SpTrack,
)

logger = get_logger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_SEARCH_LIMIT = 20

# Renew a minute early so in-flight requests don't race the expiry
_EXPIRY_MARGIN_S = 60


class SpotifyAdapter:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        market: str = "VN",
        timeout: float = 10.0,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client_id = require_text(client_id, "Spotify client_id")
        self._client_secret = require_text(client_secret, "Spotify client_secret")
        self._market = market
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._session = ReadyGuard(self._authorize, is_stale=self._token_expired)

    @classmethod
    def from_settings(cls, settings: AppSettings, *, http: Optional[httpx.AsyncClient] = None) -> "SpotifyAdapter":
        return cls(
            settings.spotify_client_id or "",
            settings.spotify_client_secret or "",
            market=settings.spotify_market,
            timeout=settings.http_timeout,
            http=http,
        )

    @property
    def platform(self) -> Platform:
        return Platform.spotify

    async def aclose(self) -> None:
        await self._http.aclose()

    # -------------------------
    # Session
    # -------------------------

    def _token_expired(self) -> bool:
        return self._access_token is None or time.monotonic() >= self._expires_at

    async def _authorize(self) -> None:
        logger.debug("Requesting Spotify access token")
        try:
            r = await self._http.post(
                SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.platform.value, f"token request failed: {e}") from e

        if r.status_code != 200:
            raise ProviderError(self.platform.value, "failed to authorize", http_status=r.status_code)

        data = r.json()
        self._access_token = data["access_token"]
        self._expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - _EXPIRY_MARGIN_S

    async def _get(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        """GET an API path; returns parsed JSON, or None on 404."""
        generation = await self._session.ensure_ready()
        r = await self._send(path, params)

        if r.status_code == 401:
            logger.debug("Spotify returned 401 for %s, refreshing token", path)
            await self._session.refresh(generation)
            r = await self._send(path, params)

        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise ProviderError(self.platform.value, f"GET {path} failed", http_status=r.status_code)
        return r.json()

    async def _send(self, path: str, params: Optional[dict]) -> httpx.Response:
        try:
            return await self._http.get(
                f"{SPOTIFY_API_BASE_URL}{path}",
                params=params,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.platform.value, f"GET {path} failed: {e}") from e

    def _parse(self, model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProviderError(self.platform.value, f"unexpected {model.__name__} payload: {e}") from e

    # -------------------------
    # Fetch
    # -------------------------

    async def fetch_track(self, track_id: str) -> Optional[Track]:
        track_id = require_text(track_id, "track id")
        data = await self._get(f"/tracks/{track_id}")
        return normalize.to_track(self._parse(SpTrack, data)) if data is not None else None

    async def fetch_album(self, album_id: str) -> Optional[Album]:
        album_id = require_text(album_id, "album id")
        data = await self._get(f"/albums/{album_id}")
        return normalize.to_album(self._parse(SpAlbum, data)) if data is not None else None

    async def fetch_playlist(self, playlist_id: str) -> Optional[Playlist]:
        playlist_id = require_text(playlist_id, "playlist id")
        data = await self._get(f"/playlists/{playlist_id}")
        return normalize.to_playlist(self._parse(SpPlaylist, data)) if data is not None else None

    async def fetch_artist(self, artist_id: str) -> Optional[Artist]:
        artist_id = require_text(artist_id, "artist id")
        data = await self._get(f"/artists/{artist_id}")
        return normalize.to_artist(self._parse(SpArtist, data)) if data is not None else None

    # -------------------------
    # Search
    # -------------------------

    async def search(
        self,
        query: str,
        kinds: Collection[SearchKind | str] = (SearchKind.track,),
        *,
        market: Optional[str] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
    ) -> SearchResults:
        query = require_text(query, "search query")
        wanted = require_kinds(kinds)
        if SearchKind.video in wanted:
            raise InvalidArgument("Spotify has no video search")

        params = {
            "q": query,
            "type": ",".join(sorted(k.value for k in wanted)),
            "limit": str(limit),
            "market": market or self._market,
            "offset": str(offset),
        }
        data = await self._get("/search", params)
        if data is None:
            return normalize.to_search_results(SpSearchResponse(), wanted)
        return normalize.to_search_results(self._parse(SpSearchResponse, data), wanted)

    async def search_tracks(
        self, query: str, *, market: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[Track]:
        results = await self.search(query, [SearchKind.track], market=market, limit=limit, offset=offset)
        return results.tracks

    async def search_albums(
        self, query: str, *, market: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[Album]:
        results = await self.search(query, [SearchKind.album], market=market, limit=limit, offset=offset)
        return results.albums

    async def search_artists(
        self, query: str, *, market: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[Artist]:
        results = await self.search(query, [SearchKind.artist], market=market, limit=limit, offset=offset)
        return results.artists

    async def search_playlists(
        self, query: str, *, market: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[Playlist]:
        results = await self.search(query, [SearchKind.playlist], market=market, limit=limit, offset=offset)
        return results.playlists
