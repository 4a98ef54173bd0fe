"""Audio sessions and the finders that discover them."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

MASTER_SESSION_NAME = "master"  # master device volume
SYSTEM_SESSION_NAME = "system"  # system sounds volume
INPUT_SESSION_NAME = "mic"  # microphone input level

SESSION_CREATION_LOG_MESSAGE = "Created audio session instance"


class RefreshSessionsError(Exception):
    """Raised by a session whose volume cannot be set until sessions are refreshed."""


class Session(ABC):
    """A single addressable audio session."""

    def __init__(
        self,
        name: str,
        description: str,
        system: bool = False,
        master: bool = False,
    ) -> None:
        self.name = name
        self.description = description
        self.system = system
        self.master = master
        self.logger = logging.getLogger(f"slidermix.sessions.{self.key()}")

    def key(self) -> str:
        """The lower-case name under which this session is looked up."""
        if self.system:
            return SYSTEM_SESSION_NAME
        return self.name.lower()

    @abstractmethod
    def get_volume(self) -> float:
        """Return the current volume as a scalar between 0.0 and 1.0."""

    @abstractmethod
    def set_volume(self, value: float) -> None:
        """Set the volume to a scalar between 0.0 and 1.0."""

    def release(self) -> None:
        """Release any resources held by the session."""
        self.logger.debug("Releasing audio session")

    def __str__(self) -> str:
        return f"<session: {self.description}, vol: {self.get_volume():.2f}>"


class SessionFinder(ABC):
    """Something that can list every current audio session."""

    @abstractmethod
    def get_all_sessions(self) -> list[Session]:
        """Return all audio sessions currently available."""

    @abstractmethod
    def release(self) -> None:
        """Release the finder's resources."""