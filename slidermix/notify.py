"""Desktop notifications."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Optional

APP_NAME = "slidermix"


class Notifier(ABC):
    """Sends a notification with a title and a message."""

    @abstractmethod
    def notify(self, title: str, message: str) -> None:
        """Deliver a notification to the user."""


class DesktopNotifier(Notifier):
    """Shows notifications through the desktop's notification tool.

    Failures are logged, never raised.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        base = logger if logger is not None else logging.getLogger(APP_NAME)
        self._logger = base.getChild("notifier")
        self._logger.debug("Created desktop notifier instance")

    def notify(self, title: str, message: str) -> None:
        self._logger.info("Sending desktop notification: title=%r message=%r", title, message)

        command = _notification_command(title, message)
        if command is None:
            self._logger.warning("No desktop notification tool available")
            return

        try:
            subprocess.run(command, check=True, capture_output=True, timeout=10)
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger.error("Failed to send desktop notification: %s", exc)


def _applescript_quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _notification_command(title: str, message: str) -> Optional[list[str]]:
    if sys.platform.startswith("linux"):
        tool = shutil.which("notify-send")
        if tool is None:
            return None
        return [tool, f"--app-name={APP_NAME}", title, message]

    if sys.platform == "darwin":
        tool = shutil.which("osascript")
        if tool is None:
            return None
        script = (
            f"display notification {_applescript_quote(message)} "
            f"with title {_applescript_quote(title)}"
        )
        return [tool, "-e", script]

    return None