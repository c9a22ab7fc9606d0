"""
Adapter contract + shared provider helpers.

Goal:
- Give the client one shape for every catalog (Spotify, YouTube Music)
- Keep session bootstrapping (tokens, API objects, binaries) inside the adapters
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Collection,
    FrozenSet,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from musicbridge.core.errors import InvalidArgument
from musicbridge.core.models import Album, Artist, Platform, Playlist, SearchKind, SearchResults, Track


# ---------------------------
# Progress (download operations)
# ---------------------------

@dataclass(frozen=True)
class ProgressEvent:
    """
    Standard progress signal for callers of long-running delegate operations.
    """
    provider_id: str
    phase: str                 # "resolve" | "download" | "postprocess"
    message: str
    progress: Optional[float] = None  # 0..1 if known


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class DownloadResult:
    provider_id: str
    item_title: str
    output_paths: Tuple[str, ...]
    warnings: Tuple[str, ...] = ()


def emit_progress(
    progress: Optional[ProgressCallback],
    *,
    provider_id: str,
    phase: str,
    message: str,
    progress_value: Optional[float] = None,
) -> None:
    if progress is None:
        return
    progress(ProgressEvent(provider_id=provider_id, phase=phase, message=message, progress=progress_value))


# ---------------------------
# Input validation
# ---------------------------

def require_text(value: Optional[str], what: str) -> str:
    """Reject empty/blank input before any I/O happens."""
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{what} is required")
    return str(value).strip()


def require_kinds(kinds: Optional[Collection[SearchKind | str]]) -> FrozenSet[SearchKind]:
    if not kinds:
        raise InvalidArgument("at least one search kind is required")
    try:
        return frozenset(SearchKind(k) for k in kinds)
    except ValueError as e:
        raise InvalidArgument(str(e)) from e


# ---------------------------
# Lazy session initialisation
# ---------------------------

class ReadyGuard:
    """
    Single-flight initialisation for adapter session state.

    Concurrent first callers share one `init()` run. `refresh(generation)`
    re-runs init only if nobody refreshed since `generation` was observed, so
    a burst of auth failures triggers a single token renewal.
    """

    def __init__(
        self,
        init: Callable[[], Awaitable[None]],
        *,
        is_stale: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._init = init
        self._is_stale = is_stale
        self._lock = asyncio.Lock()
        self._ready = False
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def ready(self) -> bool:
        return self._ready and not self._stale()

    def _stale(self) -> bool:
        return self._is_stale is not None and self._is_stale()

    async def ensure_ready(self) -> int:
        if self.ready:
            return self._generation
        async with self._lock:
            if not self.ready:
                await self._run_init()
        return self._generation

    async def refresh(self, seen_generation: int) -> int:
        async with self._lock:
            if self._generation == seen_generation:
                await self._run_init()
        return self._generation

    async def _run_init(self) -> None:
        self._ready = False
        await self._init()
        self._ready = True
        self._generation += 1


# ---------------------------
# Catalog adapter interface
# ---------------------------

@runtime_checkable
class CatalogAdapter(Protocol):
    """
    Catalog adapters implement:
    - fetch_*(id): canonical entity, or None when the id resolves to nothing
    - search(query, kinds, ...): SearchResults with only the requested kinds filled
    - search_<kind>s(query, ...): `search` narrowed to one kind and unwrapped

    Transport/auth failures surviving one retry raise ProviderError; empty ids
    and queries raise InvalidArgument before any request.
    """

    @property
    def platform(self) -> Platform:
        """Tag stamped on every entity this adapter produces."""

    async def fetch_track(self, track_id: str) -> Optional[Track]:
        ...

    async def fetch_album(self, album_id: str) -> Optional[Album]:
        ...

    async def fetch_playlist(self, playlist_id: str) -> Optional[Playlist]:
        ...

    async def fetch_artist(self, artist_id: str) -> Optional[Artist]:
        ...

    async def search(
        self,
        query: str,
        kinds: Collection[SearchKind | str] = (SearchKind.track,),
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResults:
        ...

    async def search_tracks(self, query: str, *, limit: int = 20, offset: int = 0) -> List[Track]:
        ...

    async def search_albums(self, query: str, *, limit: int = 20, offset: int = 0) -> List[Album]:
        ...

    async def search_artists(self, query: str, *, limit: int = 20, offset: int = 0) -> List[Artist]:
        ...

    async def search_playlists(self, query: str, *, limit: int = 20, offset: int = 0) -> List[Playlist]:
        ...

    async def aclose(self) -> None:
        ...
