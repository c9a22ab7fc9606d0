"""
Error taxonomy shared by adapters, the stream delegate and the client.

- InvalidArgument: empty/missing input, raised before any I/O
- ProviderError: transport/auth failure that survived the adapter's retry
- NotFoundError / UnresolvedCrossProvider / DelegateFailure: only raised by
  operations whose purpose is to produce a playable stream or URL
"""

from __future__ import annotations

from typing import Optional


class MusicBridgeError(RuntimeError):
    """Base exception for musicbridge."""


class InvalidArgument(MusicBridgeError, ValueError):
    """Required input was empty or malformed."""


class ProviderError(MusicBridgeError):
    def __init__(self, platform: str, message: str, *, http_status: Optional[int] = None) -> None:
        self.platform = platform
        self.message = message
        self.http_status = http_status
        status = f" (HTTP {http_status})" if http_status is not None else ""
        super().__init__(f"[{platform}] {message}{status}")


class NotFoundError(MusicBridgeError):
    """A well-formed identifier resolved to nothing."""


class UnresolvedCrossProvider(MusicBridgeError):
    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"cross-provider search: no YouTube equivalent found for {query!r}")


class DelegateFailure(MusicBridgeError):
    """
    yt-dlp could not produce a URL or stream.

    bytes_read > 0 means the failure happened after audio was already emitted.
    """

    def __init__(
        self,
        message: str,
        *,
        exit_code: Optional[int] = None,
        bytes_read: int = 0,
        stderr_tail: str = "",
    ) -> None:
        self.exit_code = exit_code
        self.bytes_read = bytes_read
        self.stderr_tail = stderr_tail
        text = f"delegate resolution: {message}"
        if stderr_tail:
            text += f"\n\nLast output:\n{stderr_tail}"
        super().__init__(text)
