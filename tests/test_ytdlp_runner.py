from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from musicbridge.core.errors import DelegateFailure
from musicbridge.providers.base import ProgressEvent
from musicbridge.providers.youtube.ytdlp_binary import YtDlpBinary
from musicbridge.providers.youtube.ytdlp_runner import StreamState, YtDlpDelegate


def _delegate(script: Path, **kwargs) -> YtDlpDelegate:
    binary = YtDlpBinary(configured_path=str(script), bin_dir=script.parent / "bin", auto_download=False)
    return YtDlpDelegate(binary, **kwargs)


@pytest.mark.asyncio
async def test_resolve_direct_url_first_line(fake_ytdlp, tmp_path: Path) -> None:
    args_file = tmp_path / "args.txt"
    script = fake_ytdlp(
        f'printf "%s\\n" "$@" > "{args_file}"\n'
        'echo "https://rr1.googlevideo.test/audio.m4a"\n'
        'echo "https://rr1.googlevideo.test/second"'
    )
    delegate = _delegate(script, proxy="socks5://127.0.0.1:9050", base_args=["--geo-bypass"])

    url = await delegate.resolve_direct_url("dQw4w9WgXcQ", ["--force-ipv4"])

    assert url == "https://rr1.googlevideo.test/audio.m4a"
    args = args_file.read_text().splitlines()
    assert args[:4] == ["--proxy", "socks5://127.0.0.1:9050", "--geo-bypass", "--force-ipv4"]
    assert "--get-url" in args
    assert args[args.index("-f") + 1] == "bestaudio[ext=m4a]/bestaudio/best"
    assert args[-1] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.mark.asyncio
async def test_resolve_direct_url_non_zero_exit(fake_ytdlp) -> None:
    script = fake_ytdlp('echo "ERROR: [youtube] abc: Video unavailable" >&2\nexit 1')

    with pytest.raises(DelegateFailure) as exc:
        await _delegate(script).resolve_direct_url("abc")

    assert exc.value.exit_code == 1
    assert "Video unavailable" in exc.value.stderr_tail
    assert str(exc.value).startswith("delegate resolution:")


@pytest.mark.asyncio
async def test_resolve_direct_url_empty_output(fake_ytdlp) -> None:
    script = fake_ytdlp("exit 0")
    with pytest.raises(DelegateFailure):
        await _delegate(script).resolve_direct_url("abc")


@pytest.mark.asyncio
async def test_resolve_direct_url_timeout(fake_ytdlp) -> None:
    script = fake_ytdlp("sleep 30")
    with pytest.raises(DelegateFailure, match="timed out"):
        await _delegate(script, resolve_timeout=0.2).resolve_direct_url("abc")


@pytest.mark.asyncio
async def test_missing_binary_without_auto_download(tmp_path: Path) -> None:
    binary = YtDlpBinary(
        configured_path=str(tmp_path / "does-not-exist"),
        bin_dir=tmp_path / "bin",
        auto_download=False,
    )
    with pytest.raises(DelegateFailure, match="auto download is disabled"):
        await YtDlpDelegate(binary).resolve_direct_url("abc")


@pytest.mark.asyncio
async def test_stream_completes(fake_ytdlp) -> None:
    script = fake_ytdlp("printf 'audio-bytes'")
    delegate = _delegate(script)

    stream = await delegate.open_audio_stream("abc")
    chunks = [chunk async for chunk in stream]

    assert b"".join(chunks) == b"audio-bytes"
    assert stream.state is StreamState.completed
    assert stream.bytes_read == len(b"audio-bytes")


@pytest.mark.asyncio
async def test_stream_failure_after_partial_data(fake_ytdlp) -> None:
    script = fake_ytdlp("printf 'abc'\necho 'ERROR: fragment 3 not found' >&2\nexit 3")
    stream = await _delegate(script).open_audio_stream("abc")

    received = await stream.read()
    assert received == b"abc"
    with pytest.raises(DelegateFailure) as exc:
        while await stream.read():
            pass

    assert stream.state is StreamState.failed
    assert exc.value.bytes_read == 3
    assert exc.value.exit_code == 3
    assert "fragment 3 not found" in exc.value.stderr_tail
    # The failure stays visible to later reads
    with pytest.raises(DelegateFailure):
        await stream.read()


@pytest.mark.asyncio
async def test_stream_exit_before_any_byte_raises_on_open(fake_ytdlp) -> None:
    script = fake_ytdlp("echo 'ERROR: Requested format is not available' >&2\nexit 1")

    with pytest.raises(DelegateFailure) as exc:
        await _delegate(script).open_audio_stream("abc")

    assert exc.value.bytes_read == 0
    assert exc.value.exit_code == 1


@pytest.mark.asyncio
async def test_stream_close_stops_process(fake_ytdlp) -> None:
    script = fake_ytdlp("printf 'x'\nexec sleep 30")

    async with await _delegate(script).open_audio_stream("abc") as stream:
        assert await stream.read() == b"x"

    assert stream.state is StreamState.closed
    assert stream._proc.returncode is not None
    assert await stream.read() == b""


@pytest.mark.asyncio
async def test_download_audio_reports_progress_and_paths(fake_ytdlp, tmp_path: Path) -> None:
    out = tmp_path / "abc.m4a"
    script = fake_ytdlp(
        'echo "MUSICBRIDGE_PROGRESS:  12.5%"\n'
        'echo "MUSICBRIDGE_PROGRESS: 100.0%"\n'
        'echo "[ExtractAudio] Destination: ' + str(out) + '"\n'
        'echo "FILE:' + str(out) + '"'
    )
    events: List[ProgressEvent] = []

    result = await _delegate(script).download_audio("abc", str(tmp_path / "%(id)s.%(ext)s"), progress=events.append)

    assert result.output_paths == (str(out),)
    progress = [e.progress for e in events if e.phase == "download"]
    assert progress == [0.0, 0.125, 1.0, 1.0]
    assert any(e.phase == "postprocess" for e in events)


@pytest.mark.asyncio
async def test_download_audio_failure(fake_ytdlp) -> None:
    script = fake_ytdlp("echo 'ERROR: unable to download' >&2\nexit 2")
    with pytest.raises(DelegateFailure) as exc:
        await _delegate(script).download_audio("abc")
    assert exc.value.exit_code == 2


@pytest.mark.asyncio
async def test_download_audio_keeps_progress_output_enabled(fake_ytdlp, tmp_path: Path) -> None:
    args_file = tmp_path / "args.txt"
    script = fake_ytdlp(f'printf "%s\\n" "$@" > "{args_file}"\necho "FILE:{tmp_path / "abc.m4a"}"')

    await _delegate(script).download_audio("abc", str(tmp_path / "%(id)s.%(ext)s"))

    args = args_file.read_text().splitlines()
    # --print turns on quiet mode, which hides progress lines unless --progress is also given
    assert "--print" in args
    assert "--progress" in args
    assert args[args.index("--progress-template") + 1].startswith("download:MUSICBRIDGE_PROGRESS:")


@pytest.mark.asyncio
async def test_stream_read_honors_requested_size(fake_ytdlp) -> None:
    script = fake_ytdlp("printf 'audio-bytes'")
    stream = await _delegate(script).open_audio_stream("abc")

    first = await stream.read(2)
    assert first == b"au"
    assert stream.bytes_read == 2

    rest = b""
    while True:
        chunk = await stream.read(3)
        if not chunk:
            break
        assert len(chunk) <= 3
        rest += chunk

    assert first + rest == b"audio-bytes"
    assert stream.bytes_read == len(b"audio-bytes")
    assert stream.state is StreamState.completed
