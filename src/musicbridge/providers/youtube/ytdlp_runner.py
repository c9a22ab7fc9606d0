"""
yt-dlp delegate: turn a YouTube video id into audio.

Operations:
- resolve_direct_url(): bounded `--get-url` run, first URL line wins
- open_audio_stream(): `-o -` piped to the caller as an AudioStream (no timeout)
- download_audio(): download to disk, reporting progress events

Notes:
- Processes run in their own process group so a stop reaches ffmpeg children too.
- Stop is staged: SIGINT, then SIGTERM, then SIGKILL.
- download_audio forces a stable progress marker via --progress-template so
  parsing does not depend on yt-dlp's localized progress formatting.
"""

from __future__ import annotations

import asyncio
import os
import re
import signal
from collections import deque
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from musicbridge.core.errors import DelegateFailure
from musicbridge.core.logging import get_logger
from musicbridge.core.settings import AppSettings
from musicbridge.providers.base import DownloadResult, ProgressCallback, emit_progress
from musicbridge.providers.youtube.normalize import watch_url
from musicbridge.providers.youtube.ytdlp_binary import YtDlpBinary

logger = get_logger(__name__)

AUDIO_FORMAT_SELECTOR = "bestaudio[ext=m4a]/bestaudio/best"
STREAM_CHUNK_SIZE = 64 * 1024
_STDERR_TAIL_LINES = 30

# Stable marker we inject via --progress-template (see download_audio)
_PROGRESS_MARK_RE = re.compile(r"\bMUSICBRIDGE_PROGRESS:\s*(\d+(?:\.\d+)?)")

# Fallback: classic yt-dlp line (kept, but we prefer the stable marker above)
_PROGRESS_RE = re.compile(r"\[download\]\s+(\d+(?:\.\d+)?)%")

_DEST_RE = re.compile(r"Destination:\s+(.*)$")
_FILE_RE = re.compile(r"^FILE:\s*(.+)$", re.IGNORECASE)


def _group_kwargs() -> Dict[str, Any]:
    if os.name == "nt":
        return {"creationflags": getattr(asyncio.subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200)}
    return {"start_new_session": True}


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if os.name == "nt":
            proc.send_signal(signal.CTRL_BREAK_EVENT if sig == signal.SIGINT else sig)
        else:
            os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
    except OSError:
        # Group already gone or not ours; fall back to the direct child
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            pass


async def request_stop(proc: asyncio.subprocess.Process, *, gentle_timeout_s: float = 2.0) -> None:
    """
    Stop process (and its group) in a staged way:
    1) Gentle interrupt (SIGINT / CTRL_BREAK_EVENT)
    2) Terminate (SIGTERM)
    3) Kill (SIGKILL)
    """
    for sig in (signal.SIGINT, signal.SIGTERM, getattr(signal, "SIGKILL", signal.SIGTERM)):
        if proc.returncode is not None:
            return
        _signal_group(proc, sig)
        try:
            await asyncio.wait_for(proc.wait(), timeout=gentle_timeout_s)
            return
        except asyncio.TimeoutError:
            continue


class StreamState(str, Enum):
    streaming = "streaming"
    completed = "completed"
    failed = "failed"
    closed = "closed"


class AudioStream:
    """
    Live audio bytes from a yt-dlp child process.

    The consumer owns the process: read it to the end or call aclose().
    A non-zero exit after audio was already emitted is raised as
    DelegateFailure (with bytes_read) from the read that reaches EOF, so
    "completed" and "failed after N bytes" stay distinguishable.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        *,
        video_id: str,
        first_chunk: bytes = b"",
        stderr_task: Optional["asyncio.Task[None]"] = None,
        stderr_tail: Optional[deque] = None,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ) -> None:
        self._proc = proc
        self.video_id = video_id
        self._pending = first_chunk
        self._stderr_task = stderr_task
        self._stderr_tail = stderr_tail if stderr_tail is not None else deque(maxlen=_STDERR_TAIL_LINES)
        self._chunk_size = chunk_size
        self.bytes_read = 0
        self.state = StreamState.streaming
        self.error: Optional[DelegateFailure] = None

    @property
    def pid(self) -> int:
        return self._proc.pid

    async def read(self, n: int = -1) -> bytes:
        """Return the next chunk, b"" at a clean end of stream."""
        if self.state is StreamState.failed and self.error is not None:
            raise self.error
        if self.state is not StreamState.streaming:
            return b""

        if self._pending:
            size = n if n > 0 else len(self._pending)
            chunk, self._pending = self._pending[:size], self._pending[size:]
        else:
            assert self._proc.stdout is not None
            chunk = await self._proc.stdout.read(n if n > 0 else self._chunk_size)

        if chunk:
            self.bytes_read += len(chunk)
            return chunk

        await self._finish()
        return b""

    async def _finish(self) -> None:
        rc = await self._proc.wait()
        if self._stderr_task is not None:
            await self._stderr_task
        if rc == 0:
            self.state = StreamState.completed
            return
        self.state = StreamState.failed
        self.error = DelegateFailure(
            f"yt-dlp exited with code {rc} after {self.bytes_read} bytes",
            exit_code=rc,
            bytes_read=self.bytes_read,
            stderr_tail="\n".join(self._stderr_tail),
        )
        logger.warning("Audio stream for %s failed after %d bytes (exit %s)", self.video_id, self.bytes_read, rc)
        raise self.error

    async def aclose(self) -> None:
        if self.state is StreamState.streaming:
            self.state = StreamState.closed
            await request_stop(self._proc)
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

    def __aiter__(self) -> "AudioStream":
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read()
        if not chunk:
            raise StopAsyncIteration
        return chunk

    async def __aenter__(self) -> "AudioStream":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


async def _drain_lines(reader: Optional[asyncio.StreamReader], tail: deque) -> None:
    if reader is None:
        return
    async for raw in reader:
        line = raw.decode("utf-8", "replace").rstrip()
        if line:
            tail.append(line)


class YtDlpDelegate:
    def __init__(
        self,
        binary: YtDlpBinary,
        *,
        cookies_path: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        proxy: Optional[str] = None,
        base_args: Sequence[str] = (),
        resolve_timeout: float = 120.0,
    ) -> None:
        self._binary = binary
        self._cookies_path = cookies_path
        self._user_agent = user_agent
        self._referer = referer
        self._proxy = proxy
        self._base_args = list(base_args)
        self._resolve_timeout = resolve_timeout

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "YtDlpDelegate":
        return cls(
            YtDlpBinary.from_settings(settings),
            cookies_path=str(settings.cookies_path) if settings.cookies_path else None,
            user_agent=settings.user_agent,
            referer=settings.referer,
            proxy=settings.proxy,
            base_args=settings.yt_dlp_args,
            resolve_timeout=settings.resolve_timeout,
        )

    async def aclose(self) -> None:
        await self._binary.aclose()

    def default_args(self) -> List[str]:
        args: List[str] = []
        if self._cookies_path:
            args += ["--cookies", self._cookies_path]
        if self._user_agent:
            args += ["--user-agent", self._user_agent]
        if self._referer:
            args += ["--referer", self._referer]
        if self._proxy:
            args += ["--proxy", self._proxy]
        return args + self._base_args

    async def _spawn(self, args: Sequence[str], *, stdout: int = asyncio.subprocess.PIPE) -> asyncio.subprocess.Process:
        path = await self._binary.ensure()
        logger.debug("Running %s %s", path, " ".join(args))
        try:
            return await asyncio.create_subprocess_exec(
                path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=asyncio.subprocess.PIPE,
                **_group_kwargs(),
            )
        except OSError as e:
            raise DelegateFailure(f"could not start yt-dlp: {e}") from e

    async def resolve_direct_url(self, video_id: str, extra_args: Sequence[str] = ()) -> str:
        args = [
            *self.default_args(),
            *extra_args,
            "--get-url",
            "-f",
            AUDIO_FORMAT_SELECTOR,
            "--no-warnings",
            "--quiet",
            "--no-playlist",
            "--no-check-certificate",
            watch_url(video_id),
        ]
        proc = await self._spawn(args)
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self._resolve_timeout)
        except asyncio.TimeoutError as e:
            await request_stop(proc)
            raise DelegateFailure(f"timed out after {self._resolve_timeout:.0f}s resolving {video_id}") from e

        stderr_tail = "\n".join(err.decode("utf-8", "replace").splitlines()[-_STDERR_TAIL_LINES:])
        if proc.returncode != 0:
            raise DelegateFailure(
                f"yt-dlp failed with exit code {proc.returncode} for {video_id}",
                exit_code=proc.returncode,
                stderr_tail=stderr_tail,
            )

        lines = [line.strip() for line in out.decode("utf-8", "replace").splitlines() if line.strip()]
        if not lines:
            raise DelegateFailure(f"failed to extract a direct URL for {video_id}", stderr_tail=stderr_tail)
        return lines[0]

    async def open_audio_stream(
        self,
        video_id: str,
        extra_args: Sequence[str] = (),
        *,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ) -> AudioStream:
        """
        Start streaming audio bytes for `video_id`.

        Waits for the first chunk so a process that dies before emitting
        anything is reported here, not on the stream.
        """
        args = [
            *self.default_args(),
            *extra_args,
            "-o",
            "-",
            "-f",
            AUDIO_FORMAT_SELECTOR,
            "-x",
            "--no-part",
            "--quiet",
            "--no-warnings",
            watch_url(video_id),
        ]
        proc = await self._spawn(args)
        tail: deque = deque(maxlen=_STDERR_TAIL_LINES)
        stderr_task = asyncio.create_task(_drain_lines(proc.stderr, tail))

        assert proc.stdout is not None
        first = await proc.stdout.read(chunk_size)
        if not first:
            rc = await proc.wait()
            await stderr_task
            raise DelegateFailure(
                f"yt-dlp produced no audio for {video_id} (exit code {rc})",
                exit_code=rc,
                stderr_tail="\n".join(tail),
            )

        return AudioStream(
            proc,
            video_id=video_id,
            first_chunk=first,
            stderr_task=stderr_task,
            stderr_tail=tail,
            chunk_size=chunk_size,
        )

    async def download_audio(
        self,
        video_id: str,
        output_template: Optional[str] = None,
        *,
        audio_format: str = "m4a",
        audio_quality: str = "128K",
        extra_args: Sequence[str] = (),
        progress: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        """
        Download audio for `video_id` to disk and report output paths (best effort).
        """
        emit_progress(progress, provider_id="youtube", phase="download", message="Starting yt-dlp…", progress_value=0.0)

        args = [
            *self.default_args(),
            *extra_args,
            "--newline",
            # --print implies --quiet, which would also silence the progress template
            "--progress",
            "--progress-template",
            "download:MUSICBRIDGE_PROGRESS:%(progress._percent_str)s",
            "--print",
            "after_move:FILE:%(filepath)s",
            "-x",
            "--audio-format",
            audio_format,
            "--audio-quality",
            audio_quality,
            "-o",
            output_template or f"{video_id}.%(ext)s",
            "--no-warnings",
            watch_url(video_id),
        ]
        proc = await self._spawn(args)
        tail: deque = deque(maxlen=_STDERR_TAIL_LINES)
        stderr_task = asyncio.create_task(_drain_lines(proc.stderr, tail))

        output_paths: List[str] = []
        assert proc.stdout is not None
        async for raw in proc.stdout:
            line = raw.decode("utf-8", "replace").rstrip()
            if not line:
                continue

            m = _PROGRESS_MARK_RE.search(line) or _PROGRESS_RE.search(line)
            if m:
                pct = float(m.group(1))
                emit_progress(
                    progress,
                    provider_id="youtube",
                    phase="download",
                    message=f"Downloading… {pct:.1f}%",
                    progress_value=pct / 100.0,
                )
                continue

            for pattern in (_DEST_RE, _FILE_RE):
                found = pattern.search(line)
                if found and found.group(1).strip():
                    output_paths.append(found.group(1).strip())

            if line.startswith("[ExtractAudio]") or line.startswith("[ffmpeg]"):
                emit_progress(progress, provider_id="youtube", phase="postprocess", message=line)

        rc = await proc.wait()
        await stderr_task
        if rc != 0:
            raise DelegateFailure(
                f"yt-dlp failed with exit code {rc} downloading {video_id}",
                exit_code=rc,
                stderr_tail="\n".join(tail),
            )

        emit_progress(progress, provider_id="youtube", phase="download", message="yt-dlp finished", progress_value=1.0)

        # Deduplicate while preserving order
        return DownloadResult(
            provider_id="youtube",
            item_title=video_id,
            output_paths=tuple(dict.fromkeys(output_paths)),
        )
