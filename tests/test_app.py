import logging
import threading
from pathlib import Path

import pytest

from slidermix.app import Deej
from slidermix.config import CanonicalConfig, ConfigError
from slidermix.notify import Notifier
from slidermix.session import Session, SessionFinder
from slidermix.slider_map import SliderMap


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def notify(self, title, message):
        self.messages.append((title, message))


class FakeSession(Session):
    def __init__(self, name, volume=0.5, master=False):
        self.volume = volume
        self.set_values = []
        super().__init__(name, name, master=master)

    def get_volume(self):
        return self.volume

    def set_volume(self, value):
        self.set_values.append(value)
        self.volume = value


class CrashingSession(Session):
    def get_volume(self):
        raise ZeroDivisionError("boom")

    def set_volume(self, value):
        raise ZeroDivisionError("boom")


class FakeFinder(SessionFinder):
    def __init__(self, sessions=None, get_error=None, release_error=None):
        self.sessions = sessions or []
        self.get_error = get_error
        self.release_error = release_error
        self.released = 0

    def get_all_sessions(self):
        if self.get_error is not None:
            raise self.get_error
        return list(self.sessions)

    def release(self):
        self.released += 1
        if self.release_error is not None:
            raise self.release_error


def make_config(tmp_path, notifier, port=None, write=True):
    path = tmp_path / "config.yaml"
    if write:
        port = port if port is not None else str(tmp_path / "no-such-port")
        path.write_text(f"com_port: '{port}'\nslider_mapping:\n  0: master\n", encoding="utf-8")
    return CanonicalConfig(notifier, user_config_path=path, internal_config_path=tmp_path / "prefs.yaml")


def run_with_guard(app):
    guard = threading.Timer(10.0, app.signal_stop)
    guard.daemon = True
    guard.start()
    try:
        return app.initialize()
    finally:
        guard.cancel()


def test_missing_port_notifies_and_stops(tmp_path):
    notifier = RecordingNotifier()
    port = str(tmp_path / "no-such-port")
    finder = FakeFinder([FakeSession("master", master=True)])
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier, port), finder)

    assert run_with_guard(app) == 0
    titles = [title for title, _ in notifier.messages]
    assert f"Can't connect to {port}!" in titles
    assert finder.released == 1
    assert app.serial.connected is False


def test_missing_config_raises(tmp_path):
    notifier = RecordingNotifier()
    config = make_config(tmp_path, notifier, write=False)
    app = Deej(logging.getLogger("test"), False, notifier, config, FakeFinder())

    with pytest.raises(ConfigError):
        app.initialize()
    assert notifier.messages[0][0] == "Can't find configuration!"


def test_session_finder_failure_propagates(tmp_path):
    notifier = RecordingNotifier()
    finder = FakeFinder(get_error=LookupError("no audio"))
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier), finder)

    with pytest.raises(LookupError):
        app.initialize()


def test_release_failure_gives_exit_code_one(tmp_path):
    notifier = RecordingNotifier()
    finder = FakeFinder([FakeSession("master", master=True)], release_error=OSError("stuck"))
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier), finder)

    assert run_with_guard(app) == 1
    assert finder.released == 1


def test_stop_raises_when_release_fails(tmp_path):
    notifier = RecordingNotifier()
    finder = FakeFinder(release_error=OSError("stuck"))
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier), finder)

    with pytest.raises(OSError):
        app.stop()


def test_crash_writes_crashlog_and_exits_with_one(tmp_path):
    notifier = RecordingNotifier()
    crash_dir = tmp_path / "crashes"
    finder = FakeFinder([CrashingSession("master", "master", master=True)])
    app = Deej(
        logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier, "loop://"), finder
    )
    app.crashlog_directory = crash_dir

    assert run_with_guard(app) == 1
    logs = list(Path(crash_dir).iterdir())
    assert len(logs) == 1
    assert "boom" in logs[0].read_text(encoding="utf-8")
    assert notifier.messages[-1] == ("Unexpected crash occurred...", f"More details in {logs[0]}")


def test_slider_moves_reach_sessions(tmp_path):
    notifier = RecordingNotifier()
    master = FakeSession("master", volume=0.5, master=True)
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier), FakeFinder())
    app.config.slider_mapping = SliderMap({0: ["master"]})
    app.sessions.add(master)

    app.serial.handle_line("1023\r\n")

    assert master.set_values == [1.0]


def test_set_version_is_recorded(tmp_path):
    notifier = RecordingNotifier()
    app = Deej(logging.getLogger("test"), False, notifier, make_config(tmp_path, notifier), FakeFinder())
    app.set_version("Version dev-abc")
    assert app.version == "Version dev-abc"