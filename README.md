# slidermix

slidermix turns a set of physical sliders into an audio mixer. A
microcontroller sends the slider positions over a serial port, and slidermix
maps each slider to one or more audio targets: the master output, the
microphone, or individual applications. Audio is controlled through
PulseAudio, using the `pactl` command.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

`pactl` must be on your `PATH`. Desktop notifications use `notify-send` on
Linux and `osascript` on macOS; when neither is available, notifications are
only logged.

## Running

Put a `config.yaml` in the directory you start slidermix from, then run:

```
slidermix
```

Add `--verbose` (or `-v`) to log every line read from the serial port and
every slider move.

Stop it with Ctrl+C (SIGINT) or SIGTERM. The command exits with status 0 on a
clean stop and 1 if the configuration could not be loaded, the audio sessions
could not be acquired, or a background task crashed.

On startup, slidermix sends the board one byte per mapped slider: the current
volume (0-255) of the first target of that slider that has a live session.

If the serial port is busy or does not exist, slidermix shows a notification
and stops.

## Configuration

`config.yaml` is plain YAML:

```yaml
slider_mapping:
  0: master
  1: firefox
  2:
    - spotify
    - vlc
  3: mic
  4: slidermix.unmapped

invert_sliders: false

com_port: /dev/ttyUSB0
baud_rate: 9600

noise_reduction: default
```

- `slider_mapping`: slider index to a target name or a list of target names.
  A single string holding several whitespace-separated names counts as a
  list. Names are case-insensitive and match the process binary name
  reported by PulseAudio. Keys that are not integers are treated as slider 0.
  - `master`: the default output sink.
  - `mic`: the default input source.
  - `slidermix.unmapped`: every application session that no slider names.
- `invert_sliders`: flip the direction of every slider.
- `com_port`: the serial device (default `COM4`). Any port name or URL that
  pyserial's `serial_for_url` accepts works.
- `baud_rate`: serial speed (default `9600`). Zero or a negative value falls
  back to the default.
- `noise_reduction`: `low`, `high`, or anything else for the default. Higher
  levels ignore larger slider jitter.

Extra mappings may be placed in `logs/preferences.yaml` under the same
`slider_mapping` key. Targets listed there are added to the ones in
`config.yaml`; duplicates and empty names are skipped. This file is optional.

While running, slidermix polls `config.yaml` for changes. When it is saved,
the configuration is reloaded, a notification is shown, audio sessions are
re-scanned, and the serial connection is reopened if the port or baud rate
changed.

Audio sessions are also re-scanned when a slider moves and the session list is
older than 45 seconds, when a slider's targets are not found (at most once
every 5 seconds), and when setting a volume fails.

## Serial protocol

The board sends one line per reading: slider values from 0 to 1023 separated
by `|` and ending in CRLF, for example `1023|512|0\r\n`. Lines that don't
match this shape, or whose first value is above 1023, are ignored. Values are
scaled to a volume between 0.00 and 1.00, truncated to two decimals. A slider
only produces a move when its value changes by more than the noise threshold,
or when it reaches 0.00 or 1.00.

## Logs and crashes

The `slidermix` command logs to standard error. `slidermix.logger.new_logger`
with the build type `"release"` logs instead to
`logs/slidermix-latest-run.log`.

If the config watcher or the serial start-up crashes, slidermix writes a crash
report to `logs/slidermix-crash-<timestamp>.log`, shows a notification
pointing to it, and stops.

## Using it as a library

- `slidermix.app.Deej` wires everything together; it accepts its own
  notifier, `CanonicalConfig` and session finder.
- `slidermix.session.Session` and `SessionFinder` are the base classes for
  audio backends; `slidermix.pulse.PulseSessionFinder` is the PulseAudio one
  and takes an optional runner in place of `pactl`.
- `slidermix.session_map.SessionMap` accepts a `current_window_names`
  callable; with it, the target `slidermix.current` stands for the returned
  process names.
- `slidermix.serial_io.SerialIO.handle_line` turns one line from the board
  into `SliderMoveEvent`s.

## What it does not do

- There is no tray icon or menu; slidermix runs in the foreground.
- Only PulseAudio is supported; there is no backend for Windows audio.
- The `slidermix` command supplies no foreground-window lookup, so
  `slidermix.current` resolves to no targets there.