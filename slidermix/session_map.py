"""Keyed collection of live audio sessions, driven by slider movements."""

from __future__ import annotations

import logging
import re
import threading
from time import monotonic
from typing import Callable, Iterable, Optional, Protocol

from slidermix.session import (
    INPUT_SESSION_NAME,
    MASTER_SESSION_NAME,
    SYSTEM_SESSION_NAME,
    Session,
    SessionFinder,
)
from slidermix.slider_map import SliderMap, SliderMoveEvent

# Targets with this prefix are transformed before their sessions are looked up,
# so they never clash with a similarly named process.
SPECIAL_TARGET_TRANSFORM_PREFIX = "slidermix."

# Targets the process(es) owning the foreground window.
SPECIAL_TARGET_CURRENT_WINDOW = "current"

# Targets every session not mapped to any slider.
SPECIAL_TARGET_ALL_UNMAPPED = "unmapped"

# Re-acquiring all sessions is expensive, so non-forced refreshes are rate limited.
MIN_TIME_BETWEEN_SESSION_REFRESHES = 5.0

# A slider move on a map older than this forces a refresh first, so newly
# started processes are picked up.
MAX_TIME_BETWEEN_SESSION_REFRESHES = 45.0

# Friendly device names, e.g. "Headphones (Realtek Audio)".
DEVICE_SESSION_KEY_PATTERN = re.compile(r"^.+ \(.+\)$")

_ALWAYS_MAPPED_KEYS = frozenset({MASTER_SESSION_NAME, SYSTEM_SESSION_NAME, INPUT_SESSION_NAME})

_logger = logging.getLogger("slidermix.sessions")


class _Config(Protocol):
    slider_mapping: SliderMap

    def subscribe_to_changes(self, callback: Callable[[], None]) -> None: ...


class SessionMap:
    """Holds the current audio sessions keyed by name and applies slider moves to them."""

    def __init__(
        self,
        config: _Config,
        session_finder: SessionFinder,
        current_window_names: Optional[Callable[[], Iterable[str]]] = None,
    ) -> None:
        self.config = config
        self.session_finder = session_finder
        self.current_window_names = current_window_names

        self._lock = threading.RLock()
        self._sessions: dict[str, list[Session]] = {}
        self._unmapped_sessions: list[Session] = []
        self._last_session_refresh = monotonic()

        _logger.debug("Created session map instance")

    def initialize(self) -> None:
        """Acquire all sessions and start refreshing them on config reloads."""
        self._get_and_add_sessions()
        self.config.subscribe_to_changes(self._on_config_reloaded)

    def release(self) -> None:
        """Release the underlying session finder."""
        try:
            self.session_finder.release()
        except Exception:
            _logger.warning("Failed to release session finder during session map release")
            raise

    def refresh_sessions(self, force: bool = False) -> None:
        """Clear and re-acquire all sessions.

        Unless ``force`` is set, nothing happens if the last refresh was too recent.
        """
        if not force and self._last_session_refresh + MIN_TIME_BETWEEN_SESSION_REFRESHES > monotonic():
            return

        self.clear()

        try:
            self._get_and_add_sessions()
        except Exception as exc:
            _logger.warning("Failed to re-acquire all audio sessions: %s", exc)
        else:
            _logger.debug("Re-acquired sessions successfully")

    def session_mapped(self, session: Session) -> bool:
        """Tell whether a session is bound to some slider.

        Master, system and mic sessions, and device sessions, always count as mapped.
        """
        key = session.key()
        if key in _ALWAYS_MAPPED_KEYS:
            return True
        if DEVICE_SESSION_KEY_PATTERN.match(key):
            return True

        for _slider_id, targets in self.config.slider_mapping.items():
            for target in targets:
                if _has_special_transform(target):
                    continue
                if self.resolve_target(target)[0] == key:
                    return True
        return False

    def handle_slider_move_event(self, event: SliderMoveEvent) -> None:
        """Set the volume of every session bound to the moved slider."""
        if self._last_session_refresh + MAX_TIME_BETWEEN_SESSION_REFRESHES < monotonic():
            _logger.debug("Stale session map detected on slider move, refreshing")
            self.refresh_sessions(force=True)

        targets = self.config.slider_mapping.get(event.slider_id)
        if targets is None:
            return

        target_found = False
        adjustment_failed = False

        for target in targets:
            for resolved in self.resolve_target(target):
                sessions = self.get(resolved)
                if sessions is None:
                    continue

                target_found = True
                for session in sessions:
                    if session.get_volume() == event.percent_value:
                        continue
                    try:
                        session.set_volume(event.percent_value)
                    except Exception as exc:
                        _logger.warning("Failed to set target session volume: %s", exc)
                        adjustment_failed = True

        # Processes may have started since the last refresh; the cooldown keeps
        # this from spamming. A failed adjustment (e.g. a stale master session)
        # justifies a forced refresh.
        if not target_found:
            self.refresh_sessions(force=False)
        elif adjustment_failed:
            self.refresh_sessions(force=True)

    def resolve_target(self, target: str) -> list[str]:
        """Turn a configured target into the session keys it stands for."""
        target = target.lower()
        if _has_special_transform(target):
            return self._apply_target_transform(target[len(SPECIAL_TARGET_TRANSFORM_PREFIX):])
        return [target]

    def add(self, session: Session) -> None:
        """Add a session under its key."""
        with self._lock:
            self._sessions.setdefault(session.key(), []).append(session)

    def get(self, key: str) -> Optional[list[Session]]:
        """Return the sessions stored under ``key``, or None if there are none."""
        with self._lock:
            sessions = self._sessions.get(key)
            return list(sessions) if sessions is not None else None

    def clear(self) -> None:
        """Release and remove every session."""
        with self._lock:
            _logger.debug("Releasing and clearing all audio sessions")
            for sessions in self._sessions.values():
                for session in sessions:
                    session.release()
            self._sessions.clear()
            _logger.debug("Session map cleared")

    def __str__(self) -> str:
        with self._lock:
            count = sum(len(sessions) for sessions in self._sessions.values())
        return f"<{count} audio sessions>"

    def _get_and_add_sessions(self) -> None:
        # Mark the refresh before anything else, so failures also respect the cooldown.
        self._last_session_refresh = monotonic()
        self._unmapped_sessions = []

        try:
            sessions = self.session_finder.get_all_sessions()
        except Exception as exc:
            _logger.warning("Failed to get sessions from session finder: %s", exc)
            raise

        for session in sessions:
            self.add(session)
            if not self.session_mapped(session):
                _logger.debug("Tracking unmapped session: %s", session)
                self._unmapped_sessions.append(session)

        _logger.info("Got all audio sessions successfully: sessionMap=%s", self)

    def _on_config_reloaded(self) -> None:
        _logger.info("Detected config reload, attempting to re-acquire all audio sessions")
        self.refresh_sessions(force=False)

    def _apply_target_transform(self, name: str) -> list[str]:
        if name == SPECIAL_TARGET_CURRENT_WINDOW:
            if self.current_window_names is None:
                return []
            try:
                names = self.current_window_names()
            except Exception:
                # This is on the hot path; failures just mean no targets.
                return []
            return list(dict.fromkeys(str(n).lower() for n in (names or [])))

        if name == SPECIAL_TARGET_ALL_UNMAPPED:
            return [session.key() for session in self._unmapped_sessions]

        return []


def _has_special_transform(target: str) -> bool:
    return target.startswith(SPECIAL_TARGET_TRANSFORM_PREFIX)