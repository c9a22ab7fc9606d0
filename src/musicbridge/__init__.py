"""
musicbridge: Spotify + YouTube Music metadata, yt-dlp streams, LRCLIB lyrics.

Exposes the client, canonical models, errors and settings so callers don't
need to import internal modules.
"""

from __future__ import annotations

from musicbridge.core.client import MusicClient, MatchStrategy, first_result
from musicbridge.core.detector import DetectedUrl, detect
from musicbridge.core.errors import (
    DelegateFailure,
    InvalidArgument,
    MusicBridgeError,
    NotFoundError,
    ProviderError,
    UnresolvedCrossProvider,
)
from musicbridge.core.logging import get_logger, setup_logging
from musicbridge.core.models import (
    Album,
    Artist,
    ArtistName,
    ArtistRef,
    Image,
    ItemKind,
    Lyrics,
    Platform,
    Playlist,
    SearchKind,
    SearchResults,
    SongWithStream,
    SyncedLine,
    Track,
    Video,
)
from musicbridge.core.settings import AppSettings, load_settings
from musicbridge.providers.youtube.ytdlp_runner import AudioStream, StreamState

__all__ = [
    "Album",
    "AppSettings",
    "Artist",
    "ArtistName",
    "ArtistRef",
    "AudioStream",
    "DelegateFailure",
    "DetectedUrl",
    "Image",
    "InvalidArgument",
    "ItemKind",
    "Lyrics",
    "MatchStrategy",
    "MusicBridgeError",
    "MusicClient",
    "NotFoundError",
    "Platform",
    "Playlist",
    "ProviderError",
    "SearchKind",
    "SearchResults",
    "SongWithStream",
    "StreamState",
    "SyncedLine",
    "Track",
    "UnresolvedCrossProvider",
    "Video",
    "detect",
    "first_result",
    "get_logger",
    "load_settings",
    "setup_logging",
]
