"""Crash log writing for unexpected failures."""

from __future__ import annotations

import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from slidermix.logger import LOG_DIRECTORY
from slidermix.util import ensure_dir_exists

CRASHLOG_FILENAME = "slidermix-crash-{}.log"
CRASHLOG_TIMESTAMP_FORMAT = "%Y.%m.%d-%H.%M.%S"

_SEPARATOR = "-" * 65

_CRASH_MESSAGE = f"""{_SEPARATOR}
                      slidermix crashlog
{_SEPARATOR}
Unfortunately, slidermix has crashed. This really shouldn't happen!
Please report the problem and attach this error log.
{_SEPARATOR}
Time: {{time}}
Panic occurred: {{error}}
Stack trace:
{{stack}}
{_SEPARATOR}
"""


def format_crashlog(error: object, stack: str, now: datetime) -> str:
    """Render the crash log text for an error and its stack trace."""
    return _CRASH_MESSAGE.format(
        time=now.strftime(CRASHLOG_TIMESTAMP_FORMAT),
        error=error,
        stack=stack,
    )


def write_crashlog(
    error: BaseException,
    directory: Union[str, os.PathLike] = LOG_DIRECTORY,
    now: Optional[datetime] = None,
) -> Path:
    """Write a crash log for ``error`` into ``directory`` and return its path."""
    now = now if now is not None else datetime.now()
    ensure_dir_exists(directory)

    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    path = Path(directory) / CRASHLOG_FILENAME.format(now.strftime(CRASHLOG_TIMESTAMP_FORMAT))
    path.write_text(format_crashlog(error, stack, now), encoding="utf-8")
    return path