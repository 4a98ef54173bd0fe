"""PulseAudio sessions, driven through the ``pactl`` command."""

from __future__ import annotations

import json
import logging
import math
import subprocess
from typing import Callable, Optional, Sequence

from slidermix.session import (
    INPUT_SESSION_NAME,
    MASTER_SESSION_NAME,
    SESSION_CREATION_LOG_MESSAGE,
    Session,
    SessionFinder,
)

# Normal PulseAudio volume (100%).
MAX_VOLUME = 0x10000

PROCESS_BINARY_PROPERTY = "application.process.binary"

Runner = Callable[[Sequence[str]], str]

_logger = logging.getLogger("slidermix.session_finder")


class PulseError(Exception):
    """Raised when talking to the PulseAudio server fails."""


def run_pactl(args: Sequence[str]) -> str:
    """Run ``pactl`` with ``args`` and return its standard output."""
    try:
        completed = subprocess.run(
            ["pactl", *args], capture_output=True, text=True, check=True, timeout=5
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise PulseError(f"pactl {' '.join(args)}: {exc}") from exc
    return completed.stdout


def create_channel_volumes(channels: int, volume: float) -> list[int]:
    """Raw per-channel volumes for a scalar volume."""
    return [max(0, int(volume * MAX_VOLUME))] * channels


def parse_channel_volumes(volumes: Sequence[int]) -> float:
    """Average raw channel volumes into a scalar; NaN when there are none."""
    if not volumes:
        return math.nan
    return sum(volumes) / len(volumes) / MAX_VOLUME


def _list(runner: Runner, kind: str) -> list[dict]:
    text = runner(["--format=json", "list", kind])
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise PulseError(f"parse {kind} list: {exc}") from exc
    if not isinstance(data, list):
        raise PulseError(f"parse {kind} list: expected a list")
    return data


def _channel_values(entry: dict) -> list[int]:
    volume = entry.get("volume") or {}
    return [int(channel["value"]) for channel in volume.values()]


def _find(entries: list[dict], field: str, value: object) -> dict:
    for entry in entries:
        if entry.get(field) == value:
            return entry
    raise PulseError(f"no entry with {field}={value!r}")


class PulseSession(Session):
    """The audio stream of a single application (a sink input)."""

    def __init__(
        self, runner: Runner, sink_input_index: int, channels: int, process_name: str
    ) -> None:
        super().__init__(process_name, process_name)
        self.runner = runner
        self.sink_input_index = sink_input_index
        self.channels = channels
        self.process_name = process_name
        self.logger.debug("%s: %s", SESSION_CREATION_LOG_MESSAGE, self)

    def get_volume(self) -> float:
        try:
            entry = _find(_list(self.runner, "sink-inputs"), "index", self.sink_input_index)
            values = _channel_values(entry)
        except PulseError as exc:
            self.logger.warning("Failed to get session volume: %s", exc)
            values = []
        return parse_channel_volumes(values)

    def set_volume(self, value: float) -> None:
        volumes = create_channel_volumes(self.channels, value)
        try:
            self.runner(
                ["set-sink-input-volume", str(self.sink_input_index), *map(str, volumes)]
            )
        except PulseError as exc:
            self.logger.warning("Failed to set session volume: %s", exc)
            raise PulseError(f"adjust session volume: {exc}") from exc
        self.logger.debug("Adjusting session volume to %.2f", value)

    def release(self) -> None:
        self.logger.debug("Releasing audio session")


class PulseMasterSession(Session):
    """The default output sink ("master") or input source ("mic")."""

    def __init__(self, runner: Runner, stream_index: int, channels: int, is_output: bool) -> None:
        key = MASTER_SESSION_NAME if is_output else INPUT_SESSION_NAME
        super().__init__(key, key, master=True)
        self.runner = runner
        self.stream_index = stream_index
        self.channels = channels
        self.is_output = is_output
        self.logger.debug("%s: %s", SESSION_CREATION_LOG_MESSAGE, self)

    @property
    def _kind(self) -> str:
        return "sink" if self.is_output else "source"

    def get_volume(self) -> float:
        try:
            entry = _find(_list(self.runner, f"{self._kind}s"), "index", self.stream_index)
            values = _channel_values(entry)
        except PulseError as exc:
            self.logger.warning("Failed to get session volume: %s", exc)
            return 0.0
        return parse_channel_volumes(values)

    def set_volume(self, value: float) -> None:
        volumes = create_channel_volumes(self.channels, value)
        try:
            self.runner(
                [f"set-{self._kind}-volume", str(self.stream_index), *map(str, volumes)]
            )
        except PulseError as exc:
            self.logger.warning("Failed to set session volume: %s volume=%s", exc, value)
            raise PulseError(f"adjust session volume: {exc}") from exc
        self.logger.debug("Adjusting session volume to %.2f", value)

    def release(self) -> None:
        self.logger.debug("Releasing audio session")


class PulseSessionFinder(SessionFinder):
    """Finds the master sink, master source and application streams."""

    def __init__(self, runner: Optional[Runner] = None) -> None:
        self.runner: Runner = runner if runner is not None else run_pactl
        try:
            self.runner(["info"])
        except PulseError as exc:
            _logger.warning("Failed to establish PulseAudio connection: %s", exc)
            raise PulseError(f"establish PulseAudio connection: {exc}") from exc
        _logger.debug("Created PA session finder instance")

    def get_all_sessions(self) -> list[Session]:
        sessions: list[Session] = []

        for is_output in (True, False):
            try:
                sessions.append(self._master_session(is_output))
            except PulseError as exc:
                kind = "sink" if is_output else "source"
                _logger.warning("Failed to get master audio %s session: %s", kind, exc)

        try:
            sessions.extend(self._application_sessions())
        except PulseError as exc:
            _logger.warning("Failed to enumerate audio sessions: %s", exc)
            raise PulseError(f"enumerate audio sessions: {exc}") from exc

        return sessions

    def release(self) -> None:
        _logger.debug("Released PA session finder instance")

    def _master_session(self, is_output: bool) -> PulseMasterSession:
        kind = "sink" if is_output else "source"
        name = self.runner([f"get-default-{kind}"]).strip()
        entry = _find(_list(self.runner, f"{kind}s"), "name", name)
        return PulseMasterSession(
            self.runner, int(entry["index"]), len(_channel_values(entry)), is_output
        )

    def _application_sessions(self) -> list[PulseSession]:
        result = []
        for entry in _list(self.runner, "sink-inputs"):
            name = (entry.get("properties") or {}).get(PROCESS_BINARY_PROPERTY)
            if not name:
                _logger.warning(
                    "Failed to get sink input's process name: sinkInputIndex=%s",
                    entry.get("index"),
                )
                continue
            result.append(
                PulseSession(self.runner, int(entry["index"]), len(_channel_values(entry)), str(name))
            )
        return result