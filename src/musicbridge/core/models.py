from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class Platform(str, Enum):
    spotify = "spotify"
    youtube = "youtube"


class ItemKind(str, Enum):
    track = "track"
    album = "album"
    playlist = "playlist"
    artist = "artist"
    video = "video"


class SearchKind(str, Enum):
    track = "track"
    album = "album"
    artist = "artist"
    playlist = "playlist"
    video = "video"


_FROZEN = {"extra": "forbid", "frozen": True}


class Image(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None

    model_config = _FROZEN


class Track(BaseModel):
    """
    A single song, normalized from one provider.

    `artist` is a flattened display string ("A, B"); `duration` is whole seconds.
    """

    id: str
    title: str
    artist: str = ""
    album: str = ""
    duration: Optional[int] = Field(None, ge=0)
    url: str
    images: List[Image] = Field(default_factory=list)
    platform: Platform

    model_config = _FROZEN


class SongWithStream(Track):
    """A Track for which a direct audio URL was resolved."""

    stream_url: str = Field(..., min_length=1)

    @classmethod
    def from_track(cls, track: Track, stream_url: str) -> "SongWithStream":
        return cls(**track.model_dump(), stream_url=stream_url)


class Artist(BaseModel):
    id: str
    name: str
    url: str
    images: List[Image] = Field(default_factory=list)
    platform: Platform

    model_config = _FROZEN


class Album(BaseModel):
    id: str
    name: str
    total: int = Field(0, ge=0)
    images: List[Image] = Field(default_factory=list)
    # Artist objects when the provider gives ids, plain names otherwise
    artists: List[Union[Artist, str]] = Field(default_factory=list)
    platform: Platform
    playlist_id: Optional[str] = None

    model_config = _FROZEN


class Playlist(BaseModel):
    """
    `total` is the provider's declared count; `tracks` is only the first page.
    """

    id: str
    name: str
    total: int = Field(0, ge=0)
    tracks: List[Track] = Field(default_factory=list)
    url: str
    platform: Platform
    images: Optional[List[Image]] = None

    model_config = _FROZEN


class ArtistName(BaseModel):
    kind: Literal["name"] = "name"
    name: str

    model_config = _FROZEN


class ArtistRef(BaseModel):
    kind: Literal["ref"] = "ref"
    id: str
    name: str

    model_config = _FROZEN


VideoArtist = Annotated[Union[ArtistName, ArtistRef], Field(discriminator="kind")]


class Video(BaseModel):
    id: str
    name: str
    artist: Optional[VideoArtist] = None
    duration: Optional[int] = Field(None, ge=0)
    images: List[Image] = Field(default_factory=list)
    url: str
    platform: Platform = Platform.youtube

    model_config = _FROZEN

    @property
    def artist_name(self) -> str:
        return self.artist.name if self.artist is not None else ""

    def to_track(self) -> Track:
        return Track(
            id=self.id,
            title=self.name,
            artist=self.artist_name,
            album="",
            duration=self.duration,
            url=self.url,
            images=list(self.images),
            platform=self.platform,
        )


class SearchResults(BaseModel):
    """
    *_total is what the provider reported and may exceed the list length.
    """

    tracks_total: int = Field(0, ge=0)
    albums_total: int = Field(0, ge=0)
    artists_total: int = Field(0, ge=0)
    playlists_total: int = Field(0, ge=0)
    videos_total: int = Field(0, ge=0)

    tracks: List[Track] = Field(default_factory=list)
    albums: List[Album] = Field(default_factory=list)
    artists: List[Artist] = Field(default_factory=list)
    playlists: List[Playlist] = Field(default_factory=list)
    videos: List[Video] = Field(default_factory=list)

    model_config = _FROZEN


class SyncedLine(BaseModel):
    time_ms: int = Field(..., ge=0)
    time_formatted: str
    text: str

    model_config = _FROZEN


class Lyrics(BaseModel):
    id: str = ""
    track_name: str
    artist_name: str
    album_name: str = ""
    duration: float = 0
    instrumental: bool = False
    plain_lyrics: List[str] = Field(default_factory=list)
    synced_lyrics: List[SyncedLine] = Field(default_factory=list)
    source: str = "lrclib"

    model_config = _FROZEN
