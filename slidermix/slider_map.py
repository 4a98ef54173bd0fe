"""Mapping of slider indices to the audio targets they control."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from slidermix.session import MASTER_SESSION_NAME

_INTEGER = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class SliderMoveEvent:
    """A single slider movement: which slider, and its new volume scalar."""

    slider_id: int
    percent_value: float


class SliderMap:
    """Thread-safe mapping from slider index to a list of target names."""

    def __init__(self, mapping: Optional[Mapping[int, list[str]]] = None) -> None:
        self._lock = threading.Lock()
        self._mapping: dict[int, list[str]] = {
            key: list(value) for key, value in (mapping or {}).items()
        }

    def get(self, slider_id: int) -> Optional[list[str]]:
        """Return the targets of a slider, or None if it is not mapped."""
        with self._lock:
            return self._mapping.get(slider_id)

    def set(self, slider_id: int, targets: list[str]) -> None:
        """Replace the targets of a slider."""
        with self._lock:
            self._mapping[slider_id] = targets

    def items(self) -> list[tuple[int, list[str]]]:
        """Return a snapshot of (slider index, targets) pairs."""
        with self._lock:
            return list(self._mapping.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._mapping)

    def __str__(self) -> str:
        with self._lock:
            slider_count = len(self._mapping)
            target_count = sum(len(targets) for targets in self._mapping.values())
        return f"<{slider_count} sliders mapped to {target_count} targets>"


def _slider_index(key: object) -> int:
    text = str(key)
    return int(text) if _INTEGER.fullmatch(text) else 0


def _as_targets(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Iterable):
        return [str(item) for item in value]
    return [str(value)]


def slider_map_from_configs(
    user_mapping: Optional[Mapping[object, object]],
    internal_mapping: Optional[Mapping[object, object]],
) -> SliderMap:
    """Merge the user and internal slider mappings.

    Empty targets are dropped; internal targets already present for a slider
    are skipped. Keys that are not integers map to slider 0.
    """
    result = SliderMap()

    for key, targets in (user_mapping or {}).items():
        result.set(_slider_index(key), [t for t in _as_targets(targets) if t])

    for key, targets in (internal_mapping or {}).items():
        index = _slider_index(key)
        existing = list(result.get(index) or [])
        additions = [t for t in _as_targets(targets) if t and t not in existing]
        result.set(index, existing + additions)

    return result


def default_slider_map() -> SliderMap:
    """A map with slider 0 controlling the master volume."""
    return SliderMap({0: [MASTER_SESSION_NAME]})