"""
Typed views over Spotify Web API responses.

Only the fields normalization needs are declared; everything else is ignored.
"""

from __future__ import annotations

from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

_LENIENT = {"extra": "ignore"}


class SpImage(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None

    model_config = _LENIENT


class SpArtist(BaseModel):
    id: Optional[str] = None
    name: str = ""
    external_urls: Dict[str, str] = Field(default_factory=dict)
    images: List[SpImage] = Field(default_factory=list)

    model_config = _LENIENT


class SpAlbum(BaseModel):
    id: Optional[str] = None
    name: str = ""
    total_tracks: Optional[int] = None
    images: List[SpImage] = Field(default_factory=list)
    artists: List[SpArtist] = Field(default_factory=list)
    external_urls: Dict[str, str] = Field(default_factory=dict)

    model_config = _LENIENT


class SpTrack(BaseModel):
    id: Optional[str] = None
    type: str = "track"
    name: str = ""
    duration_ms: Optional[int] = None
    artists: List[SpArtist] = Field(default_factory=list)
    album: Optional[SpAlbum] = None
    # Search/track objects never carry their own images, but local files and
    # episodes sometimes do
    images: List[SpImage] = Field(default_factory=list)
    external_urls: Dict[str, str] = Field(default_factory=dict)

    model_config = _LENIENT


class SpPage(BaseModel, Generic[T]):
    items: List[Optional[T]] = Field(default_factory=list)
    total: int = 0

    model_config = _LENIENT


class SpPlaylistItem(BaseModel):
    track: Optional[SpTrack] = None

    model_config = _LENIENT


class SpPlaylist(BaseModel):
    id: str
    name: str = ""
    images: Optional[List[SpImage]] = None
    external_urls: Dict[str, str] = Field(default_factory=dict)
    tracks: SpPage[SpPlaylistItem] = Field(default_factory=SpPage[SpPlaylistItem])

    model_config = _LENIENT


class SpPlaylistSummary(BaseModel):
    """Playlist as returned by search: `tracks` only carries the count."""

    id: str
    name: str = ""
    images: Optional[List[SpImage]] = None
    external_urls: Dict[str, str] = Field(default_factory=dict)
    tracks: Optional[Dict[str, object]] = None

    model_config = _LENIENT


class SpSearchResponse(BaseModel):
    tracks: Optional[SpPage[SpTrack]] = None
    albums: Optional[SpPage[SpAlbum]] = None
    artists: Optional[SpPage[SpArtist]] = None
    playlists: Optional[SpPage[SpPlaylistSummary]] = None

    model_config = _LENIENT
