from __future__ import annotations

from typing import List, Optional

from musicbridge.core.models import (
    Album,
    Artist,
    ArtistName,
    ArtistRef,
    Image,
    Platform,
    Playlist,
    Track,
    Video,
)
from musicbridge.providers.youtube.payloads import (
    YtAlbum,
    YtArtist,
    YtArtistRef,
    YtPlaylist,
    YtSong,
    YtThumbnail,
    YtVideoDetails,
    YtWatchTrack,
    parse_duration,
)


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def playlist_url(playlist_id: str) -> str:
    return f"https://www.youtube.com/playlist?list={playlist_id}"


def channel_url(channel_id: str) -> str:
    return f"https://music.youtube.com/channel/{channel_id}"


def _images(thumbnails: List[YtThumbnail]) -> List[Image]:
    return [Image(url=t.url, height=t.height, width=t.width) for t in thumbnails]


def _artist_names(artists: List[YtArtistRef]) -> str:
    return ", ".join(a.name for a in artists if a.name)


def _strip_vl(browse_id: Optional[str]) -> str:
    # Playlist browse ids are "VL" + playlist id
    if browse_id and browse_id.startswith("VL"):
        return browse_id[2:]
    return browse_id or ""


def _count(value) -> int:
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, str):
        digits = value.replace(",", "").split(" ")[0]
        if digits.isdigit():
            return int(digits)
    return 0


def to_track(item: YtSong) -> Track:
    video_id = item.video_id or ""
    return Track(
        id=video_id,
        title=item.title,
        artist=_artist_names(item.artists),
        album=item.album.name if item.album else "",
        duration=item.seconds,
        url=watch_url(video_id),
        images=_images(item.thumbnails),
        platform=Platform.youtube,
    )


def watch_to_track(item: YtWatchTrack) -> Track:
    video_id = item.video_id or ""
    return Track(
        id=video_id,
        title=item.title,
        artist=_artist_names(item.artists),
        album=item.album.name if item.album else "",
        duration=parse_duration(item.length),
        url=watch_url(video_id),
        images=_images(item.thumbnail),
        platform=Platform.youtube,
    )


def to_video(item: YtSong) -> Video:
    video_id = item.video_id or ""
    artist = None
    if item.artists:
        first = item.artists[0]
        artist = ArtistRef(id=first.id, name=first.name) if first.id else ArtistName(name=first.name)
    return Video(
        id=video_id,
        name=item.title,
        artist=artist,
        duration=item.seconds,
        images=_images(item.thumbnails),
        url=watch_url(video_id),
    )


def details_to_video(details: YtVideoDetails) -> Video:
    artist = None
    if details.author and details.channel_id:
        artist = ArtistRef(id=details.channel_id, name=details.author)
    elif details.author:
        artist = ArtistName(name=details.author)
    return Video(
        id=details.video_id,
        name=details.title,
        artist=artist,
        duration=details.length_seconds,
        images=_images(details.thumbnail.thumbnails),
        url=watch_url(details.video_id),
    )


def to_artist(item: YtArtist) -> Artist:
    artist_id = item.channel_id or item.browse_id or ""
    return Artist(
        id=artist_id,
        name=item.name or item.artist or "",
        url=channel_url(artist_id),
        images=_images(item.thumbnails),
        platform=Platform.youtube,
    )


def to_album(item: YtAlbum, browse_id: Optional[str] = None) -> Album:
    artists: List[Artist | str] = []
    for a in item.artists:
        if a.id:
            artists.append(Artist(id=a.id, name=a.name, url=channel_url(a.id), platform=Platform.youtube))
        elif a.name:
            artists.append(a.name)
    return Album(
        id=item.browse_id or browse_id or "",
        name=item.title,
        total=item.track_count or 0,
        images=_images(item.thumbnails),
        artists=artists,
        platform=Platform.youtube,
        playlist_id=item.audio_playlist_id or item.playlist_id,
    )


def to_playlist(item: YtPlaylist) -> Playlist:
    playlist_id = item.id or _strip_vl(item.browse_id)
    # Deleted/private videos show up without a videoId
    tracks = [to_track(t) for t in item.tracks if t.video_id]
    total = item.track_count if item.track_count is not None else _count(item.item_count)
    return Playlist(
        id=playlist_id,
        name=item.title,
        total=max(total, 0),
        tracks=tracks,
        url=playlist_url(playlist_id),
        platform=Platform.youtube,
        images=_images(item.thumbnails),
    )
