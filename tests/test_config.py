import threading
import time

import pytest

from slidermix.config import (
    DEFAULT_BAUD_RATE,
    DEFAULT_COM_PORT,
    CanonicalConfig,
    ConfigError,
    ConnectionInfo,
)
from slidermix.notify import Notifier


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def notify(self, title, message):
        self.messages.append((title, message))


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_config(tmp_path, notifier, user_text=None, internal_text=None):
    user = tmp_path / "config.yaml"
    internal = tmp_path / "logs" / "preferences.yaml"
    if user_text is not None:
        user.write_text(user_text, encoding="utf-8")
    if internal_text is not None:
        internal.parent.mkdir()
        internal.write_text(internal_text, encoding="utf-8")
    return CanonicalConfig(notifier, user, internal)


def test_missing_user_config_raises_and_notifies(tmp_path, notifier):
    config = make_config(tmp_path, notifier)
    with pytest.raises(ConfigError):
        config.load()
    assert [title for title, _ in notifier.messages] == ["Can't find configuration!"]


@pytest.mark.parametrize("text", ["slider_mapping: [unclosed", "- a\n- b\n"])
def test_invalid_yaml_raises_and_notifies(tmp_path, notifier, text):
    config = make_config(tmp_path, notifier, text)
    with pytest.raises(ConfigError):
        config.load()
    assert [title for title, _ in notifier.messages] == ["Invalid configuration!"]


def test_empty_file_uses_defaults(tmp_path, notifier):
    config = make_config(tmp_path, notifier, "")
    config.load()
    assert config.connection_info == ConnectionInfo(DEFAULT_COM_PORT, DEFAULT_BAUD_RATE)
    assert config.invert_sliders is False
    assert config.noise_reduction_level == ""
    assert len(config.slider_mapping) == 0
    assert notifier.messages == []


def test_values_are_read(tmp_path, notifier):
    text = (
        "slider_mapping:\n"
        "  0: master\n"
        "  1:\n"
        "    - chrome.exe\n"
        "    - spotify.exe\n"
        "    - ''\n"
        "com_port: /dev/ttyUSB0\n"
        "baud_rate: 115200\n"
        "invert_sliders: true\n"
        "noise_reduction: high\n"
    )
    config = make_config(tmp_path, notifier, text)
    config.load()
    assert config.slider_mapping.get(0) == ["master"]
    assert config.slider_mapping.get(1) == ["chrome.exe", "spotify.exe"]
    assert config.connection_info.com_port == "/dev/ttyUSB0"
    assert config.connection_info.baud_rate == 115200
    assert config.invert_sliders is True
    assert config.noise_reduction_level == "high"


@pytest.mark.parametrize("value", ["-5", "0", "fast"])
def test_invalid_baud_rate_falls_back_to_default(tmp_path, notifier, value):
    config = make_config(tmp_path, notifier, f"baud_rate: {value}\n")
    config.load()
    assert config.connection_info.baud_rate == DEFAULT_BAUD_RATE


def test_keys_are_case_insensitive(tmp_path, notifier):
    config = make_config(tmp_path, notifier, "COM_PORT: COM7\n")
    config.load()
    assert config.connection_info.com_port == "COM7"


def test_internal_mapping_is_merged_without_duplicates(tmp_path, notifier):
    config = make_config(
        tmp_path,
        notifier,
        "slider_mapping:\n  1: [chrome.exe]\n",
        "slider_mapping:\n  1: [discord.exe, chrome.exe]\n  2: [mic]\n",
    )
    config.load()
    assert config.slider_mapping.get(1) == ["chrome.exe", "discord.exe"]
    assert config.slider_mapping.get(2) == ["mic"]


def test_broken_internal_config_is_ignored(tmp_path, notifier):
    config = make_config(
        tmp_path,
        notifier,
        "slider_mapping:\n  0: [master]\n",
        "slider_mapping: [broken",
    )
    config.load()
    assert config.slider_mapping.get(0) == ["master"]
    assert notifier.messages == []


def test_watcher_reloads_and_notifies_subscribers(tmp_path, notifier):
    config = make_config(tmp_path, notifier, "com_port: COM1\n")
    config.load()

    reloaded = threading.Event()
    config.subscribe_to_changes(reloaded.set)

    watcher = threading.Thread(target=config.watch_config_file_changes, daemon=True)
    watcher.start()
    try:
        time.sleep(config.MIN_TIME_BETWEEN_RELOAD_ATTEMPTS + 0.2)
        (tmp_path / "config.yaml").write_text("com_port: COM9\nbaud_rate: 19200\n", encoding="utf-8")
        assert reloaded.wait(5)
    finally:
        config.stop_watching_config_file()
        watcher.join(5)

    assert not watcher.is_alive()
    assert config.connection_info == ConnectionInfo("COM9", 19200)
    assert ("Configuration reloaded!", "Your changes have been applied.") in notifier.messages


def test_stop_before_watch_returns_promptly(tmp_path, notifier):
    config = make_config(tmp_path, notifier, "")
    config.stop_watching_config_file()
    watcher = threading.Thread(target=config.watch_config_file_changes, daemon=True)
    watcher.start()
    watcher.join(5)
    assert not watcher.is_alive()