"""
Spotify payload -> canonical entity mapping.

Field policy:
- Track.artist joins every artist name with ", "
- Track.images prefers the album artwork over the item's own images
- Track.duration is floor(duration_ms / 1000)
- URLs fall back to https://open.spotify.com/<kind>/<id>
"""

from __future__ import annotations

from typing import Collection, List, Optional

from musicbridge.core.models import (
    Album,
    Artist,
    Image,
    Platform,
    Playlist,
    SearchKind,
    SearchResults,
    Track,
)
from musicbridge.providers.spotify.payloads import (
    SpAlbum,
    SpArtist,
    SpImage,
    SpPlaylist,
    SpPlaylistSummary,
    SpSearchResponse,
    SpTrack,
)

OPEN_SPOTIFY = "https://open.spotify.com"


def _url(external_urls: dict, kind: str, native_id: Optional[str]) -> str:
    return external_urls.get("spotify") or f"{OPEN_SPOTIFY}/{kind}/{native_id or ''}"


def _images(images: Optional[List[SpImage]]) -> List[Image]:
    return [Image(url=i.url, height=i.height, width=i.width) for i in images or []]


def _duration(duration_ms: Optional[int]) -> Optional[int]:
    if duration_ms is None or duration_ms < 0:
        return None
    return duration_ms // 1000


def to_track(item: SpTrack) -> Track:
    album_images = item.album.images if item.album else []
    return Track(
        id=item.id or "",
        title=item.name,
        artist=", ".join(a.name for a in item.artists),
        album=item.album.name if item.album else "",
        duration=_duration(item.duration_ms),
        url=_url(item.external_urls, "track", item.id),
        images=_images(album_images or item.images),
        platform=Platform.spotify,
    )


def to_artist(item: SpArtist) -> Artist:
    return Artist(
        id=item.id or "",
        name=item.name,
        url=_url(item.external_urls, "artist", item.id),
        images=_images(item.images),
        platform=Platform.spotify,
    )


def to_album(item: SpAlbum) -> Album:
    return Album(
        id=item.id or "",
        name=item.name,
        total=item.total_tracks or 0,
        images=_images(item.images),
        artists=[to_artist(a) for a in item.artists],
        platform=Platform.spotify,
    )


def to_playlist(item: SpPlaylist) -> Playlist:
    # Deleted/unavailable entries come back as null tracks; episodes are not songs
    tracks = [
        to_track(entry.track)
        for entry in item.tracks.items
        if entry is not None and entry.track is not None and entry.track.type == "track"
    ]
    return Playlist(
        id=item.id,
        name=item.name,
        total=item.tracks.total,
        tracks=tracks,
        url=_url(item.external_urls, "playlist", item.id),
        platform=Platform.spotify,
        images=_images(item.images) if item.images is not None else None,
    )


def to_playlist_summary(item: SpPlaylistSummary) -> Playlist:
    total = (item.tracks or {}).get("total") or 0
    return Playlist(
        id=item.id,
        name=item.name,
        total=int(total),
        tracks=[],
        url=_url(item.external_urls, "playlist", item.id),
        platform=Platform.spotify,
        images=_images(item.images) if item.images is not None else None,
    )


def to_search_results(data: SpSearchResponse, kinds: Collection[SearchKind]) -> SearchResults:
    """Only requested kinds are populated; the rest stay empty with zero totals."""
    fields: dict = {}

    if SearchKind.track in kinds and data.tracks is not None:
        fields["tracks_total"] = data.tracks.total
        fields["tracks"] = [to_track(i) for i in data.tracks.items if i is not None]
    if SearchKind.album in kinds and data.albums is not None:
        fields["albums_total"] = data.albums.total
        fields["albums"] = [to_album(i) for i in data.albums.items if i is not None]
    if SearchKind.artist in kinds and data.artists is not None:
        fields["artists_total"] = data.artists.total
        fields["artists"] = [to_artist(i) for i in data.artists.items if i is not None]
    if SearchKind.playlist in kinds and data.playlists is not None:
        fields["playlists_total"] = data.playlists.total
        fields["playlists"] = [to_playlist_summary(i) for i in data.playlists.items if i is not None]

    return SearchResults(**fields)
