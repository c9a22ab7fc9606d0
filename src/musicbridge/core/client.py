"""
MusicClient: URL / query in, tracks, stream URLs or audio out.

Flow:
  detect(url) -> adapter fetch -> canonical entity
    -> (Spotify only) YouTube search "<artist> - <title>" -> rank-0 match
    -> yt-dlp delegate -> direct URL or live AudioStream

Failure policy:
- Metadata reads degrade: unknown URLs and unresolvable items give None / [],
  and a stream that can't be resolved leaves the Track without stream_url.
- get_stream_url_by_url / stream_song_by_url / download_song_by_url exist to
  produce audio, so they raise and the error names the failing stage.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from musicbridge.core.detector import DetectedUrl, detect
from musicbridge.core.errors import (
    InvalidArgument,
    NotFoundError,
    ProviderError,
    UnresolvedCrossProvider,
)
from musicbridge.core.logging import get_logger
from musicbridge.core.models import ItemKind, Lyrics, Platform, SongWithStream, Track
from musicbridge.core.settings import AppSettings, load_settings
from musicbridge.providers.base import CatalogAdapter, DownloadResult, ProgressCallback, require_text
from musicbridge.providers.lyrics.client import LrclibClient
from musicbridge.providers.spotify.client import SpotifyAdapter
from musicbridge.providers.youtube.client import YouTubeMusicAdapter
from musicbridge.providers.youtube.ytdlp_runner import AudioStream, YtDlpDelegate

logger = get_logger(__name__)

# Passed to every yt-dlp call made on behalf of the client
DELEGATE_EXTRA_ARGS = ("--force-ipv4",)

MatchStrategy = Callable[[Track, Sequence[Track]], Optional[Track]]


def first_result(source: Track, candidates: Sequence[Track]) -> Optional[Track]:
    """Rank 0 wins. No title or duration comparison."""
    return candidates[0] if candidates else None


def cross_search_query(track: Track) -> str:
    return f"{track.artist} - {track.title}"


class MusicClient:
    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        spotify: Optional[CatalogAdapter] = None,
        youtube: Optional[YouTubeMusicAdapter] = None,
        lyrics: Optional[LrclibClient] = None,
        delegate: Optional[YtDlpDelegate] = None,
        match_strategy: MatchStrategy = first_result,
    ) -> None:
        self.settings = settings or load_settings()
        self._owned: List[object] = []

        if spotify is None and self.settings.has_spotify_credentials:
            spotify = self._own(SpotifyAdapter.from_settings(self.settings))
        self.spotify = spotify
        self.youtube = youtube or self._own(YouTubeMusicAdapter.from_settings(self.settings))
        self.lyrics = lyrics or self._own(LrclibClient.from_settings(self.settings))
        self.delegate = delegate or self._own(YtDlpDelegate.from_settings(self.settings))
        self.match_strategy = match_strategy

    def _own(self, component):
        self._owned.append(component)
        return component

    async def aclose(self) -> None:
        """Close the collaborators this client created; injected ones belong to the caller."""
        while self._owned:
            await self._owned.pop().aclose()

    async def __aenter__(self) -> "MusicClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def _require_spotify(self) -> CatalogAdapter:
        if self.spotify is None:
            raise ProviderError(Platform.spotify.value, "credentials not configured")
        return self.spotify

    # -------------------------
    # Search
    # -------------------------

    async def search_song(self, query: str, platform: Platform | str = Platform.youtube) -> List[Track]:
        if Platform(platform) is Platform.spotify:
            return await self._require_spotify().search_tracks(query)
        return await self.youtube.search_tracks(query)

    async def search_first_and_stream(self, query: str) -> Optional[Track]:
        """First YouTube track for `query`, with stream_url when it resolves."""
        tracks = await self.search_song(query, Platform.youtube)
        if not tracks:
            return None
        return await self._with_stream(tracks[0], tracks[0].id)

    # -------------------------
    # Metadata by URL
    # -------------------------

    async def get_song_by_url(self, url: str, with_stream: bool = False) -> Optional[Track]:
        """
        Track for a Spotify track URL or a YouTube video URL.

        Returns None for unsupported URLs and for YouTube items that can't be
        fetched. Spotify fetch errors propagate. With `with_stream`, a
        SongWithStream is returned only if a stream URL was resolved.
        """
        url = require_text(url, "url")
        detected = detect(url)
        if detected is None or detected.kind is not ItemKind.track:
            logger.debug("No track in %s", url)
            return None

        if detected.platform is Platform.spotify:
            track = await self._require_spotify().fetch_track(detected.native_id)
            if track is None or not with_stream:
                return track
            return await self._with_cross_stream(track)

        track = await self._fetch_youtube_track(detected.native_id)
        if track is None or not with_stream:
            return track
        return await self._with_stream(track, detected.native_id)

    async def _fetch_youtube_track(self, video_id: str) -> Optional[Track]:
        # get_song covers both music videos and audio tracks; the watch playlist is the fallback
        try:
            video = await self.youtube.fetch_video(video_id)
            if video is not None:
                return video.to_track()
        except Exception as e:
            logger.warning("YouTube video lookup failed for %s: %s", video_id, e)

        try:
            track = await self.youtube.fetch_track(video_id)
        except Exception as e:
            logger.warning("YouTube track lookup failed for %s: %s", video_id, e)
            return None
        if track is None:
            logger.warning("YouTube item %s could not be resolved", video_id)
        return track

    async def _with_stream(self, track: Track, video_id: str) -> Track:
        try:
            stream_url = await self.delegate.resolve_direct_url(video_id, DELEGATE_EXTRA_ARGS)
        except Exception as e:
            logger.warning("Failed to get stream URL for %s: %s", video_id, e)
            return track
        return SongWithStream.from_track(track, stream_url)

    async def _with_cross_stream(self, track: Track) -> Track:
        try:
            match = await self._find_equivalent(track)
            stream_url = await self.delegate.resolve_direct_url(match.id, DELEGATE_EXTRA_ARGS)
        except Exception as e:
            logger.warning("No stream for %s: %s", track.url, e)
            return track
        return SongWithStream.from_track(track, stream_url)

    async def get_songs_by_playlist(self, url: str) -> List[Track]:
        """
        Tracks of a Spotify playlist or a YouTube `list=` URL (first page only).

        Spotify album URLs give [] (album track listing is not resolved).
        Never raises; failures are logged and give [].
        """
        detected = detect(url) if url else None
        if detected is None:
            return []

        try:
            if detected.platform is Platform.spotify:
                if detected.kind is not ItemKind.playlist:
                    return []
                playlist = await self._require_spotify().fetch_playlist(detected.native_id)
            elif detected.playlist_id:
                playlist = await self.youtube.fetch_playlist(detected.playlist_id)
            else:
                return []
        except Exception as e:
            logger.warning("Failed to load playlist %s: %s", url, e)
            return []

        return list(playlist.tracks) if playlist is not None else []

    # -------------------------
    # Streams (hard failure)
    # -------------------------

    async def _find_equivalent(self, track: Track) -> Track:
        query = cross_search_query(track)
        candidates = await self.youtube.search_tracks(query)
        match = self.match_strategy(track, candidates)
        if match is None:
            raise UnresolvedCrossProvider(query)
        logger.debug("Matched %r to YouTube %s", query, match.id)
        return match

    async def resolve_video_id(self, url: str) -> str:
        """
        YouTube video id to hand to the delegate for `url`.

        Spotify tracks are fetched and matched on YouTube first.
        """
        url = require_text(url, "url")
        detected: Optional[DetectedUrl] = detect(url)
        if detected is None:
            raise InvalidArgument(f"unsupported URL: {url}")
        if detected.kind is not ItemKind.track:
            raise InvalidArgument(f"URL does not point to a single track: {url}")

        if detected.platform is Platform.youtube:
            return detected.native_id

        track = await self._require_spotify().fetch_track(detected.native_id)
        if track is None:
            raise NotFoundError(f"source fetch: Spotify track {detected.native_id} not found")
        match = await self._find_equivalent(track)
        return match.id

    async def get_stream_url_by_url(self, url: str) -> str:
        video_id = await self.resolve_video_id(url)
        return await self.delegate.resolve_direct_url(video_id, DELEGATE_EXTRA_ARGS)

    async def stream_song_by_url(self, url: str) -> AudioStream:
        """Live audio for `url`; the caller must drain or aclose() the stream."""
        video_id = await self.resolve_video_id(url)
        return await self.delegate.open_audio_stream(video_id, DELEGATE_EXTRA_ARGS)

    async def download_song_by_url(
        self,
        url: str,
        output_template: Optional[str] = None,
        *,
        audio_format: str = "m4a",
        audio_quality: str = "128K",
        progress: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        video_id = await self.resolve_video_id(url)
        return await self.delegate.download_audio(
            video_id,
            output_template,
            audio_format=audio_format,
            audio_quality=audio_quality,
            extra_args=DELEGATE_EXTRA_ARGS,
            progress=progress,
        )

    # -------------------------
    # Lyrics
    # -------------------------

    async def get_lyrics(
        self,
        track_name: str,
        artist_name: str,
        album_name: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Optional[Lyrics]:
        try:
            return await self.lyrics.get_lyrics(track_name, artist_name, album_name, duration)
        except ProviderError as e:
            logger.warning("Error getting lyrics: %s", e)
            return None

    async def search_lyrics(
        self,
        track_name: str,
        artist_name: str,
        album_name: Optional[str] = None,
    ) -> Optional[List[Lyrics]]:
        try:
            return await self.lyrics.search(track_name, artist_name, album_name)
        except ProviderError as e:
            logger.warning("Error searching lyrics: %s", e)
            return None
