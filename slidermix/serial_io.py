"""Serial communication with the slider board."""

from __future__ import annotations

import errno
import logging
import re
import threading
import time
from typing import Callable, Optional, Protocol

import serial

from slidermix.config import ConnectionInfo
from slidermix.session_map import SessionMap
from slidermix.slider_map import SliderMap, SliderMoveEvent
from slidermix.util import normalize_scalar, significantly_different

# A well-formed line: one to four digit values separated by pipes, ending in CRLF.
EXPECTED_LINE_PATTERN = re.compile(r"[0-9]{1,4}(?:\|[0-9]{1,4})*\r\n")

MAX_RAW_VALUE = 1023

_PERMISSION_ERRNOS = {errno.EACCES, errno.EBUSY, errno.EPERM}

_logger = logging.getLogger("slidermix.serial")


class _Config(Protocol):
    slider_mapping: SliderMap
    connection_info: ConnectionInfo
    invert_sliders: bool
    noise_reduction_level: str

    def subscribe_to_changes(self, callback: Callable[[], None]) -> None: ...


def _open_error(exc: Exception) -> OSError:
    """Classify a failure to open the port as busy, missing or other."""
    code = getattr(exc, "errno", None)
    text = str(exc)
    message = f"open serial connection: {exc}"
    if code in _PERMISSION_ERRNOS or "PermissionError" in text or "Access is denied" in text:
        return PermissionError(message)
    if code == errno.ENOENT or "FileNotFoundError" in text:
        return FileNotFoundError(message)
    return OSError(message)


class SerialIO:
    """Reads slider values from the serial port and turns them into move events."""

    STOP_DELAY = 0.05
    READ_TIMEOUT = 0.1

    def __init__(self, config: _Config, sessions: SessionMap, verbose: bool = False) -> None:
        self.config = config
        self.sessions = sessions
        self.verbose = verbose
        self.connected = False

        self._conn: Optional[serial.SerialBase] = None
        self._port_name: Optional[str] = None
        self._baud_rate: Optional[int] = None
        self._stop_event = threading.Event()
        self._reader: Optional[threading.Thread] = None

        self._state_lock = threading.Lock()
        self._last_known_num_sliders = 0
        self._current_values: list[float] = []
        self._consumers: list[Callable[[SliderMoveEvent], None]] = []

        _logger.debug("Created serial i/o instance")
        self.config.subscribe_to_changes(self._on_config_reloaded)

    def start(self) -> None:
        """Open the configured port, send the initial volumes and start reading.

        Raises RuntimeError if already connected, PermissionError if the port is
        busy, FileNotFoundError if it does not exist, and OSError otherwise.
        """
        if self.connected:
            _logger.warning("Already connected, can't start another without closing first")
            raise RuntimeError("serial: connection already active")

        info = self.config.connection_info
        self._port_name = info.com_port
        self._baud_rate = info.baud_rate

        _logger.debug(
            "Attempting serial connection: comPort=%s baudRate=%s",
            self._port_name,
            self._baud_rate,
        )

        try:
            conn = serial.serial_for_url(
                self._port_name,
                baudrate=self._baud_rate,
                bytesize=serial.EIGHTBITS,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.READ_TIMEOUT,
            )
        except (serial.SerialException, ValueError, OSError) as exc:
            _logger.warning("Failed to open serial connection: %s", exc)
            raise _open_error(exc) from exc

        port_logger = _logger.getChild(self._port_name.lower().replace(".", "_"))
        port_logger.info("Connected: %s", conn)
        self._conn = conn
        self.connected = True

        init_data = self.produce_init_data()
        try:
            conn.write(init_data)
        except (serial.SerialException, OSError) as exc:
            self._close(conn, port_logger)
            raise OSError(f"failed to send initialization data: {exc}") from exc
        _logger.info("Sent init data: %s", list(init_data))

        self._stop_event = threading.Event()
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(conn, port_logger, self._stop_event),
            name="slidermix-serial",
            daemon=True,
        )
        self._reader.start()

    def stop(self) -> None:
        """Close the serial connection, if one is active."""
        if not self.connected:
            _logger.debug("Not currently connected, nothing to stop")
            return

        _logger.debug("Shutting down serial connection")
        self._stop_event.set()
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join()

    def subscribe_to_slider_move_events(self, callback: Callable[[SliderMoveEvent], None]) -> None:
        """Call ``callback`` with every slider move event."""
        self._consumers.append(callback)

    def produce_init_data(self) -> bytes:
        """One byte per mapped slider: the current volume of its first live target, 0-255."""
        items = self.config.slider_mapping.items()
        volumes = bytearray(len(items))

        for slider_id, targets in items:
            if not 0 <= slider_id < len(volumes):
                _logger.warning("Slider index outside of init data range: slider=%s", slider_id)
                continue
            volume = self._first_target_volume(targets)
            if volume is not None:
                volumes[slider_id] = volume

        return bytes(volumes)

    def handle_line(self, line: str) -> list[SliderMoveEvent]:
        """Parse one line from the board and deliver the resulting move events.

        Malformed lines are ignored. Returns the events that were delivered.
        """
        if not EXPECTED_LINE_PATTERN.fullmatch(line):
            return []

        values = line[: -len("\r\n")].split("|")
        events: list[SliderMoveEvent] = []

        with self._state_lock:
            if len(values) != self._last_known_num_sliders:
                _logger.info("Detected sliders: amount=%d", len(values))
                self._last_known_num_sliders = len(values)
                # An impossible value forces a move event for every slider.
                self._current_values = [-1.0] * len(values)

            for slider_id, text in enumerate(values):
                number = int(text)

                # The first line can come out dirty, e.g. "4558|925|41".
                if slider_id == 0 and number > MAX_RAW_VALUE:
                    _logger.debug("Got malformed line from serial, ignoring: %r", line)
                    return []

                scalar = normalize_scalar(number / MAX_RAW_VALUE)
                if self.config.invert_sliders:
                    scalar = 1 - scalar

                if significantly_different(
                    self._current_values[slider_id], scalar, self.config.noise_reduction_level
                ):
                    self._current_values[slider_id] = scalar
                    event = SliderMoveEvent(slider_id=slider_id, percent_value=scalar)
                    events.append(event)
                    if self.verbose:
                        _logger.debug("Slider moved: %s", event)

        for consumer in list(self._consumers):
            for event in events:
                consumer(event)

        return events

    def _first_target_volume(self, targets: list[str]) -> Optional[int]:
        for target in targets:
            for resolved in self.sessions.resolve_target(target):
                sessions = self.sessions.get(resolved)
                if not sessions:
                    continue
                level = sessions[0].get_volume()
                if level != level:  # NaN
                    level = 0.0
                mapped = int(min(max(level, 0.0), 1.0) * 255 + 0.5)
                _logger.info("Found initial volume: target=%s vol=%d", target, mapped)
                return mapped
        return None

    def _read_loop(
        self,
        conn: serial.SerialBase,
        logger: logging.Logger,
        stop_event: threading.Event,
    ) -> None:
        buffer = b""
        while not stop_event.is_set():
            try:
                chunk = conn.read(conn.in_waiting or 1)
            except (serial.SerialException, OSError) as exc:
                if self.verbose:
                    logger.warning("Failed to read line from serial: %s", exc)
                stop_event.wait()
                break

            if not chunk:
                continue

            buffer += chunk
            while b"\n" in buffer:
                raw, _, buffer = buffer.partition(b"\n")
                line = (raw + b"\n").decode("latin-1")
                if self.verbose:
                    logger.debug("Read new line: %r", line)
                self.handle_line(line)

        self._close(conn, logger)

    def _close(self, conn: serial.SerialBase, logger: logging.Logger) -> None:
        try:
            conn.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("Failed to close serial connection: %s", exc)
        else:
            logger.debug("Serial connection closed")
        self._conn = None
        self.connected = False

    def _reset_slider_count(self) -> None:
        with self._state_lock:
            self._last_known_num_sliders = 0

    def _on_config_reloaded(self) -> None:
        # Forget the slider count after a short delay so that every slider emits
        # a move event again, once the session map has re-acquired its sessions.
        timer = threading.Timer(self.STOP_DELAY, self._reset_slider_count)
        timer.daemon = True
        timer.start()

        info = self.config.connection_info
        if info.com_port == self._port_name and info.baud_rate == self._baud_rate:
            return

        _logger.info("Detected change in connection parameters, attempting to renew connection")
        self.stop()
        time.sleep(self.STOP_DELAY)

        try:
            self.start()
        except (OSError, RuntimeError) as exc:
            _logger.warning("Failed to renew connection after parameter change: %s", exc)
        else:
            _logger.debug("Renewed connection successfully")