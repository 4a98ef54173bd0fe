"""The application object tying configuration, serial input and audio sessions together."""

from __future__ import annotations

import logging
import os
import signal
import threading
from typing import Callable, Optional, Union

from slidermix.config import CanonicalConfig, ConfigError
from slidermix.crashlog import write_crashlog
from slidermix.logger import LOG_DIRECTORY, ROOT_LOGGER_NAME
from slidermix.notify import DesktopNotifier, Notifier
from slidermix.pulse import PulseSessionFinder
from slidermix.serial_io import SerialIO
from slidermix.session import SessionFinder
from slidermix.session_map import SessionMap
from slidermix.util import install_close_handler


class Deej:
    """Owns every component and runs the application until it is told to stop."""

    crashlog_directory: Union[str, os.PathLike] = LOG_DIRECTORY
    WATCHER_JOIN_TIMEOUT = 1.0

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False,
        notifier: Optional[Notifier] = None,
        config: Optional[CanonicalConfig] = None,
        session_finder: Optional[SessionFinder] = None,
    ) -> None:
        base = logger if logger is not None else logging.getLogger(ROOT_LOGGER_NAME)
        self.logger = base.getChild("deej")
        self.verbose = verbose
        self.version = ""

        self.notifier: Notifier = notifier if notifier is not None else DesktopNotifier(base)
        self.config = config if config is not None else CanonicalConfig(self.notifier)
        finder = session_finder if session_finder is not None else PulseSessionFinder()

        self.sessions = SessionMap(self.config, finder)
        self.serial = SerialIO(self.config, self.sessions, verbose)
        self.serial.subscribe_to_slider_move_events(self.sessions.handle_slider_move_event)

        self._stop_event = threading.Event()
        self._exit_code = 0
        self._previous_handlers: dict[signal.Signals, object] = {}
        self._watcher: Optional[threading.Thread] = None

        self.logger.debug("Created deej instance")

    def initialize(self) -> int:
        """Load the configuration, acquire sessions and run until stopped.

        Raises ConfigError if the configuration cannot be loaded, and whatever the
        session finder raises if sessions cannot be acquired. Returns the exit code.
        """
        self.logger.debug("Initializing")

        try:
            self.config.load()
        except ConfigError as exc:
            self.logger.error("Failed to load config during initialization: %s", exc)
            raise

        try:
            self.sessions.initialize()
        except Exception as exc:
            self.logger.error("Failed to initialize session map: %s", exc)
            raise

        self._install_interrupt_handler()
        return self._run()

    def set_version(self, version: str) -> None:
        """Record a version string to show to the user."""
        self.version = version

    def signal_stop(self) -> None:
        """Ask the running application to stop."""
        self.logger.debug("Signalling stop")
        self._stop_event.set()

    def stop(self) -> None:
        """Stop every component and release the audio sessions.

        Raises whatever the session finder raises when it cannot be released.
        """
        self.logger.info("Stopping")

        self.config.stop_watching_config_file()
        if self._watcher is not None and self._watcher is not threading.current_thread():
            self._watcher.join(self.WATCHER_JOIN_TIMEOUT)
        self.serial.stop()
        self._restore_interrupt_handler()

        try:
            self.sessions.release()
        except Exception as exc:
            self.logger.error("Failed to release session map: %s", exc)
            raise
        finally:
            for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
                handler.flush()

    def _install_interrupt_handler(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            self.logger.debug("Not on the main thread, skipping interrupt handler")
            return

        def _on_signal(sig: signal.Signals) -> None:
            self.logger.debug("Interrupted: signal=%s", sig.name)
            self.signal_stop()

        self._previous_handlers = install_close_handler(_on_signal)

    def _restore_interrupt_handler(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers = {}

    def _run(self) -> int:
        self.logger.info("Run loop starting")

        self._watcher = threading.Thread(
            target=self._guarded(self.config.watch_config_file_changes),
            name="slidermix-config-watcher",
            daemon=True,
        )
        self._watcher.start()

        threading.Thread(
            target=self._guarded(self._start_serial),
            name="slidermix-serial-start",
            daemon=True,
        ).start()

        self._stop_event.wait()
        self.logger.debug("Stop signalled, terminating")

        try:
            self.stop()
        except Exception as exc:
            self.logger.warning("Failed to stop: %s", exc)
            return 1
        return self._exit_code

    def _start_serial(self) -> None:
        port = self.config.connection_info.com_port
        try:
            self.serial.start()
        except PermissionError as exc:
            self.logger.warning("Failed to start first-time serial connection: %s", exc)
            self.logger.warning("Serial port seems busy, notifying user and closing: comPort=%s", port)
            self.notifier.notify(
                f"Can't connect to {port}!",
                "This serial port is busy, make sure to close any serial monitor "
                "or other slidermix instance.",
            )
            self.signal_stop()
        except FileNotFoundError as exc:
            self.logger.warning("Failed to start first-time serial connection: %s", exc)
            self.logger.warning(
                "Provided COM port seems wrong, notifying user and closing: comPort=%s", port
            )
            self.notifier.notify(
                f"Can't connect to {port}!",
                "This serial port doesn't exist, check your configuration "
                "and make sure it's set correctly.",
            )
            self.signal_stop()
        except (OSError, RuntimeError) as exc:
            self.logger.warning("Failed to start first-time serial connection: %s", exc)

    def _guarded(self, target: Callable[[], None]) -> Callable[[], None]:
        def _run_guarded() -> None:
            try:
                target()
            except Exception as exc:
                self._recover_from_crash(exc)

        return _run_guarded

    def _recover_from_crash(self, error: Exception) -> None:
        self._exit_code = 1
        try:
            path = write_crashlog(error, self.crashlog_directory)
        except OSError as exc:
            self.logger.critical("Can't write the crashlog file: %s (original error: %s)", exc, error)
            self.signal_stop()
            return

        self.logger.error("Encountered and logged crash: crashlogPath=%s error=%s", path, error)
        self.notifier.notify("Unexpected crash occurred...", f"More details in {path}")
        self.signal_stop()