"""
Root logger configuration.

Library modules only call get_logger(); nothing is configured until an
application (or a test) calls setup_logging(). Console output goes through
rich unless `use_rich=False`.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.logging import RichHandler

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "ytmusicapi")


def setup_logging(
    *,
    level: Optional[str] = None,
    use_rich: bool = True,
) -> None:
    """
    Install one handler on the root logger.

    Level comes from `level`, then MUSICBRIDGE_LOG_LEVEL, then INFO. If the
    root logger already has handlers only the level is changed.
    """
    chosen = (level or os.getenv("MUSICBRIDGE_LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(chosen)
        return

    if use_rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False, log_time_format="[%X]")
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(chosen)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
