"""
Typed views over ytmusicapi responses.

ytmusicapi returns plain dicts whose shape depends on the call
(search result, get_song, get_watch_playlist, get_album, get_playlist...).
Each shape gets its own lenient model here; normalization only sees these.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field

_LENIENT = {"extra": "ignore", "populate_by_name": True}


def parse_duration(value: Optional[str]) -> Optional[int]:
    """
    "3:33" -> 213, "1:02:15" -> 3735; None when missing or unparsable.
    """
    if not value:
        return None
    try:
        parts = [int(p) for p in value.split(":")]
    except ValueError:
        return None
    seconds = 0
    for p in parts:
        seconds = seconds * 60 + p
    return seconds if seconds >= 0 else None


class YtThumbnail(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    model_config = _LENIENT


class YtArtistRef(BaseModel):
    name: str = ""
    id: Optional[str] = None

    model_config = _LENIENT


class YtAlbumRef(BaseModel):
    name: str = ""
    id: Optional[str] = None

    model_config = _LENIENT


class YtSong(BaseModel):
    """Song/video row from search, playlists and album track lists."""

    video_id: Optional[str] = Field(None, alias="videoId")
    title: str = ""
    artists: List[YtArtistRef] = Field(default_factory=list)
    album: Optional[YtAlbumRef] = None
    duration: Optional[str] = None
    duration_seconds: Optional[int] = None
    thumbnails: List[YtThumbnail] = Field(default_factory=list)
    result_type: Optional[str] = Field(None, alias="resultType")

    model_config = _LENIENT

    @property
    def seconds(self) -> Optional[int]:
        if self.duration_seconds is not None:
            return self.duration_seconds
        return parse_duration(self.duration)


class YtWatchTrack(BaseModel):
    """Entry of get_watch_playlist()["tracks"]."""

    video_id: Optional[str] = Field(None, alias="videoId")
    title: str = ""
    length: Optional[str] = None
    thumbnail: List[YtThumbnail] = Field(default_factory=list)
    artists: List[YtArtistRef] = Field(default_factory=list)
    album: Optional[YtAlbumRef] = None

    model_config = _LENIENT


class YtThumbnailSet(BaseModel):
    thumbnails: List[YtThumbnail] = Field(default_factory=list)

    model_config = _LENIENT


class YtVideoDetails(BaseModel):
    """get_song()["videoDetails"]."""

    video_id: str = Field(..., alias="videoId")
    title: str = ""
    author: Optional[str] = None
    channel_id: Optional[str] = Field(None, alias="channelId")
    length_seconds: Optional[int] = Field(None, alias="lengthSeconds")
    thumbnail: YtThumbnailSet = Field(default_factory=YtThumbnailSet)

    model_config = _LENIENT


class YtAlbum(BaseModel):
    """get_album() response, or an album row from search."""

    browse_id: Optional[str] = Field(None, alias="browseId")
    title: str = ""
    artists: List[YtArtistRef] = Field(default_factory=list)
    thumbnails: List[YtThumbnail] = Field(default_factory=list)
    track_count: Optional[int] = Field(None, alias="trackCount")
    audio_playlist_id: Optional[str] = Field(None, alias="audioPlaylistId")
    playlist_id: Optional[str] = Field(None, alias="playlistId")

    model_config = _LENIENT


class YtArtist(BaseModel):
    """get_artist() response, or an artist row from search."""

    channel_id: Optional[str] = Field(None, alias="channelId")
    browse_id: Optional[str] = Field(None, alias="browseId")
    name: Optional[str] = None
    artist: Optional[str] = None
    thumbnails: List[YtThumbnail] = Field(default_factory=list)

    model_config = _LENIENT


class YtPlaylist(BaseModel):
    """get_playlist() response, or a playlist row from search."""

    id: Optional[str] = None
    browse_id: Optional[str] = Field(None, alias="browseId")
    title: str = ""
    thumbnails: List[YtThumbnail] = Field(default_factory=list)
    track_count: Optional[int] = Field(None, alias="trackCount")
    item_count: Union[int, str, None] = Field(None, alias="itemCount")
    tracks: List[YtSong] = Field(default_factory=list)

    model_config = _LENIENT
