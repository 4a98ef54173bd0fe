"""Loading, merging and watching of the application's configuration files."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import yaml

from slidermix.logger import LOG_DIRECTORY
from slidermix.notify import Notifier
from slidermix.slider_map import SliderMap, slider_map_from_configs
from slidermix.util import file_exists

PathLike = Union[str, os.PathLike]

USER_CONFIG_FILEPATH = "config.yaml"
INTERNAL_CONFIG_FILENAME = "preferences.yaml"

KEY_SLIDER_MAPPING = "slider_mapping"
KEY_INVERT_SLIDERS = "invert_sliders"
KEY_COM_PORT = "com_port"
KEY_BAUD_RATE = "baud_rate"
KEY_NOISE_REDUCTION_LEVEL = "noise_reduction"

DEFAULT_COM_PORT = "COM4"
DEFAULT_BAUD_RATE = 9600

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}

_logger = logging.getLogger("slidermix.config")


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded."""


@dataclass
class ConnectionInfo:
    """Serial connection parameters."""

    com_port: str = DEFAULT_COM_PORT
    baud_rate: int = DEFAULT_BAUD_RATE


def _read_yaml(path: PathLike) -> dict[str, object]:
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise yaml.YAMLError("yaml: top level of the configuration must be a mapping")
    return {str(key).lower(): value for key, value in data.items()}


def _to_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip() in _TRUE_STRINGS
    return False


def _as_mapping(value: object) -> dict[object, object]:
    return dict(value) if isinstance(value, dict) else {}


class CanonicalConfig:
    """Application-wide configuration, loaded from a user file and an internal one."""

    MIN_TIME_BETWEEN_RELOAD_ATTEMPTS = 0.5
    DELAY_BETWEEN_EVENT_AND_RELOAD = 0.05
    POLL_INTERVAL = 0.05

    def __init__(
        self,
        notifier: Notifier,
        user_config_path: PathLike = USER_CONFIG_FILEPATH,
        internal_config_path: Optional[PathLike] = None,
    ) -> None:
        self.notifier = notifier
        self.user_config_path = Path(user_config_path)
        self.internal_config_path = (
            Path(internal_config_path)
            if internal_config_path is not None
            else Path(LOG_DIRECTORY) / INTERNAL_CONFIG_FILENAME
        )

        self.slider_mapping = SliderMap()
        self.connection_info = ConnectionInfo()
        self.invert_sliders = False
        self.noise_reduction_level = ""

        self._reload_consumers: list[Callable[[], None]] = []
        self._stop_watching = threading.Event()

        _logger.debug("Created config instance")

    def load(self) -> None:
        """Read both configuration files and populate the fields.

        Raises ConfigError if the user configuration is missing or unreadable.
        """
        path = self.user_config_path
        _logger.debug("Loading config: path=%s", path)

        if not file_exists(path):
            _logger.warning("Config file not found: path=%s", path)
            self.notifier.notify(
                "Can't find configuration!",
                f"{path.name} must be in the same directory as slidermix. Please re-launch",
            )
            raise ConfigError(f"config file doesn't exist: {path}")

        try:
            user = _read_yaml(path)
        except yaml.YAMLError as exc:
            _logger.warning("Failed to read user config: %s", exc)
            self.notifier.notify(
                "Invalid configuration!",
                f"Please make sure {path.name} is in a valid YAML format.",
            )
            raise ConfigError(f"read user config: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            _logger.warning("Failed to read user config: %s", exc)
            self.notifier.notify(
                "Error loading configuration!",
                "Please check slidermix's logs for more details.",
            )
            raise ConfigError(f"read user config: {exc}") from exc

        try:
            internal = _read_yaml(self.internal_config_path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            _logger.debug("Failed to read internal config (this is fine): %s", exc)
            internal = {}

        self._populate(user, internal)

        _logger.info("Loaded config successfully")
        _logger.info(
            "Config values: sliderMapping=%s connectionInfo=%s invertSliders=%s",
            self.slider_mapping,
            self.connection_info,
            self.invert_sliders,
        )

    def subscribe_to_changes(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` every time the configuration is reloaded."""
        self._reload_consumers.append(callback)

    def watch_config_file_changes(self) -> None:
        """Reload the configuration whenever the user file is written.

        Blocks until stop_watching_config_file() is called.
        """
        _logger.debug("Starting to watch user config file for changes: path=%s", self.user_config_path)

        last_attempted_reload = time.monotonic()
        last_signature = self._file_signature()

        while not self._stop_watching.wait(self.POLL_INTERVAL):
            signature = self._file_signature()
            if signature == last_signature:
                continue
            last_signature = signature
            if signature is None:
                continue

            now = time.monotonic()
            if last_attempted_reload + self.MIN_TIME_BETWEEN_RELOAD_ATTEMPTS >= now:
                continue

            _logger.debug("Config file modified, attempting reload")
            time.sleep(self.DELAY_BETWEEN_EVENT_AND_RELOAD)

            try:
                self.load()
            except ConfigError as exc:
                _logger.warning("Failed to reload config file: %s", exc)
            else:
                _logger.info("Reloaded config successfully")
                self.notifier.notify("Configuration reloaded!", "Your changes have been applied.")
                self._on_config_reloaded()

            last_signature = self._file_signature()
            last_attempted_reload = now

        self._stop_watching.clear()
        _logger.debug("Stopping user config file watcher")

    def stop_watching_config_file(self) -> None:
        """Tell the file watcher to stop."""
        self._stop_watching.set()

    def _file_signature(self) -> Optional[tuple[int, int]]:
        try:
            stat = self.user_config_path.stat()
        except OSError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def _populate(self, user: dict[str, object], internal: dict[str, object]) -> None:
        self.slider_mapping = slider_map_from_configs(
            _as_mapping(user.get(KEY_SLIDER_MAPPING)),
            _as_mapping(internal.get(KEY_SLIDER_MAPPING)),
        )

        com_port = user.get(KEY_COM_PORT)
        baud_value = user.get(KEY_BAUD_RATE)
        baud_rate = _to_int(DEFAULT_BAUD_RATE if baud_value is None else baud_value)
        if baud_rate <= 0:
            _logger.warning(
                "Invalid baud rate specified, using default value: key=%s invalidValue=%s defaultValue=%s",
                KEY_BAUD_RATE,
                baud_rate,
                DEFAULT_BAUD_RATE,
            )
            baud_rate = DEFAULT_BAUD_RATE

        self.connection_info = ConnectionInfo(
            com_port=DEFAULT_COM_PORT if com_port is None else _to_str(com_port),
            baud_rate=baud_rate,
        )
        self.invert_sliders = _to_bool(user.get(KEY_INVERT_SLIDERS, False))
        self.noise_reduction_level = _to_str(user.get(KEY_NOISE_REDUCTION_LEVEL))

        _logger.debug("Populated config fields")

    def _on_config_reloaded(self) -> None:
        _logger.debug("Notifying consumers about configuration reload")
        for consumer in list(self._reload_consumers):
            consumer()