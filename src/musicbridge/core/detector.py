"""
URL classification.

Pure string/regex matching, no network access, never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from musicbridge.core.models import ItemKind, Platform

_SPOTIFY_MARKERS = ("spotify.com",)
_YOUTUBE_MARKERS = ("youtube.com", "youtu.be", "music.youtube.com")

# Checked in order: track wins over playlist, playlist over album
_SPOTIFY_PATTERNS = (
    (ItemKind.track, re.compile(r"track/([a-zA-Z0-9]+)")),
    (ItemKind.playlist, re.compile(r"playlist/([a-zA-Z0-9]+)")),
    (ItemKind.album, re.compile(r"album/([a-zA-Z0-9]+)")),
)

_YOUTUBE_VIDEO_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&?/]+)"),
    re.compile(r"music\.youtube\.com/watch\?v=([^&?/]+)"),
)

_YOUTUBE_LIST_RE = re.compile(r"[?&]list=([^&]+)")


@dataclass(frozen=True)
class DetectedUrl:
    platform: Platform
    kind: ItemKind
    native_id: str
    playlist_id: Optional[str] = None


def detect_platform(url: Optional[str]) -> Optional[Platform]:
    if not url:
        return None
    if any(m in url for m in _SPOTIFY_MARKERS):
        return Platform.spotify
    if any(m in url for m in _YOUTUBE_MARKERS):
        return Platform.youtube
    return None


def parse_spotify_url(url: str) -> Optional[Tuple[ItemKind, str]]:
    for kind, pattern in _SPOTIFY_PATTERNS:
        m = pattern.search(url)
        if m:
            return kind, m.group(1)
    return None


def extract_youtube_video_id(url: str) -> Optional[str]:
    for pattern in _YOUTUBE_VIDEO_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def extract_youtube_playlist_id(url: str) -> Optional[str]:
    m = _YOUTUBE_LIST_RE.search(url)
    return m.group(1) if m else None


def detect(url: Optional[str]) -> Optional[DetectedUrl]:
    """
    Classify `url` and extract its provider-native id.

    Returns None for unknown domains and for known domains without a usable id.
    A YouTube URL may carry both a video id and a playlist id; the video wins
    `kind`, the list id is kept in `playlist_id`.
    """
    platform = detect_platform(url)
    if platform is None:
        return None

    if platform is Platform.spotify:
        parsed = parse_spotify_url(url)
        if parsed is None:
            return None
        kind, native_id = parsed
        return DetectedUrl(platform=platform, kind=kind, native_id=native_id)

    video_id = extract_youtube_video_id(url)
    playlist_id = extract_youtube_playlist_id(url)
    if video_id:
        return DetectedUrl(platform=platform, kind=ItemKind.track, native_id=video_id, playlist_id=playlist_id)
    if playlist_id:
        return DetectedUrl(platform=platform, kind=ItemKind.playlist, native_id=playlist_id, playlist_id=playlist_id)
    return None
