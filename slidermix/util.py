"""Filesystem, platform, process and volume helpers."""

from __future__ import annotations

import logging
import math
import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import Callable, Union

PathLike = Union[str, os.PathLike]

NOISE_REDUCTION_HIGH = "high"
NOISE_REDUCTION_LOW = "low"

# A threshold sits halfway between two round percent values: 0.025 lets the
# volume move in 3% steps.
_NOISE_THRESHOLDS = {
    NOISE_REDUCTION_HIGH: 0.035,
    NOISE_REDUCTION_LOW: 0.015,
}
_DEFAULT_NOISE_THRESHOLD = 0.025

_logger = logging.getLogger("slidermix.util")


def ensure_dir_exists(path: PathLike) -> None:
    """Create the directory (and its parents) if it does not exist yet."""
    os.makedirs(path, exist_ok=True)


def file_exists(filename: PathLike) -> bool:
    """Return True if the path exists and is a regular file, not a directory."""
    return Path(filename).is_file()


def is_linux() -> bool:
    """Return True when running on Linux."""
    return sys.platform.startswith("linux")


def install_close_handler(
    callback: Callable[[signal.Signals], None],
) -> dict[signal.Signals, object]:
    """Call ``callback`` with the signal when SIGINT or SIGTERM arrives.

    Returns the handlers that were in place before, keyed by signal.
    """

    def _handler(signum: int, _frame: object) -> None:
        callback(signal.Signals(signum))

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def open_external(command: str, argument: str) -> None:
    """Run ``command argument`` through the platform shell and wait for it.

    Raises OSError if the process cannot be started or exits unsuccessfully.
    """
    if is_linux():
        args = ["/bin/bash", "-c", f"{command} {argument}"]
    else:
        args = ["cmd.exe", "/C", "start", "/b", command, argument]

    try:
        subprocess.run(args, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        _logger.warning(
            "Failed to spawn detached process: command=%r argument=%r error=%s",
            command,
            argument,
            exc,
        )
        raise OSError(f"spawn detached proc: {exc}") from exc


def normalize_scalar(value: float) -> float:
    """Trim a scalar down to two decimal places (0.15442 -> 0.15)."""
    return math.floor(value * 100) / 100.0


def significantly_different(old: float, new: float, noise_reduction_level: str) -> bool:
    """Tell whether two volume scalars differ enough to act on.

    The threshold depends on the noise reduction level ("high", "low" or
    anything else for the default). Values close to 0.0 or 1.0 snap to the edge.
    """
    threshold = _NOISE_THRESHOLDS.get(noise_reduction_level, _DEFAULT_NOISE_THRESHOLD)

    if abs(old - new) >= threshold:
        return True

    if _almost_equals(new, 1.0) and old != 1.0:
        return True
    if _almost_equals(new, 0.0) and old != 0.0:
        return True

    return False


def _almost_equals(a: float, b: float) -> bool:
    return abs(a - b) < 0.000001