import signal
import subprocess
import sys
from unittest.mock import patch

import pytest

from slidermix import util


def test_ensure_dir_exists_creates_nested_and_is_idempotent(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    util.ensure_dir_exists(target)
    util.ensure_dir_exists(target)
    assert target.is_dir()


def test_ensure_dir_exists_fails_on_file(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(OSError):
        util.ensure_dir_exists(blocker)


def test_file_exists(tmp_path):
    regular = tmp_path / "config.yaml"
    regular.write_text("a: 1")
    assert util.file_exists(regular) is True
    assert util.file_exists(tmp_path) is False
    assert util.file_exists(tmp_path / "missing.yaml") is False


@pytest.mark.parametrize("platform, expected", [("linux", True), ("win32", False), ("darwin", False)])
def test_is_linux(platform, expected):
    with patch.object(sys, "platform", platform):
        assert util.is_linux() is expected


def test_install_close_handler_calls_back_with_signal():
    received = []
    previous = util.install_close_handler(received.append)
    try:
        signal.raise_signal(signal.SIGTERM)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    assert received == [signal.SIGTERM]
    assert set(previous) == {signal.SIGINT, signal.SIGTERM}


def test_open_external_linux_uses_bash():
    with patch.object(sys, "platform", "linux"), patch("slidermix.util.subprocess.run") as run:
        result = util.open_external("gedit", "config.yaml")
    assert result is None
    assert run.call_count == 1
    args = run.call_args.args[0]
    assert args == ["/bin/bash", "-c", "gedit config.yaml"]


def test_open_external_windows_uses_cmd():
    with patch.object(sys, "platform", "win32"), patch("slidermix.util.subprocess.run") as run:
        result = util.open_external("notepad.exe", "config.yaml")
    assert result is None
    assert run.call_count == 1
    args = run.call_args.args[0]
    assert args[0] == "cmd.exe"
    assert args[-2:] == ["notepad.exe", "config.yaml"]


def test_open_external_failure_raises():
    failure = subprocess.CalledProcessError(1, "gedit")
    with patch.object(sys, "platform", "linux"), patch(
        "slidermix.util.subprocess.run", side_effect=failure
    ):
        with pytest.raises(OSError, match="spawn detached proc"):
            util.open_external("gedit", "config.yaml")


def test_normalize_scalar_worked_example():
    assert util.normalize_scalar(0.15442) == pytest.approx(0.15)


def test_normalize_scalar_edges():
    assert util.normalize_scalar(1.0) == 1.0
    assert util.normalize_scalar(0.0) == 0.0


@pytest.mark.parametrize("raw", [0, 1, 17, 255, 511, 512, 700, 1000, 1022, 1023])
def test_normalize_scalar_trims_down(raw):
    value = raw / 1023.0
    result = util.normalize_scalar(value)
    assert result <= value
    assert value - result <= 0.01 + 1e-9


def test_significantly_different_thresholds():
    # a 0.02 step is significant only at low noise reduction
    assert util.significantly_different(0.5, 0.52, "low") is True
    assert util.significantly_different(0.5, 0.52, "") is False
    assert util.significantly_different(0.5, 0.52, "high") is False
    # a 0.03 step passes the default but not high noise reduction
    assert util.significantly_different(0.5, 0.53, "") is True
    assert util.significantly_different(0.5, 0.53, "high") is False


def test_significantly_different_snaps_to_edges():
    assert util.significantly_different(0.99, 1.0, "high") is True
    assert util.significantly_different(0.01, 0.0, "high") is True
    assert util.significantly_different(1.0, 1.0, "high") is False
    assert util.significantly_different(0.0, 0.0, "high") is False


def test_significantly_different_from_impossible_value():
    assert util.significantly_different(-1.0, 0.5, "") is True