"""Reading and writing collector configuration documents, and upgrade events."""

from __future__ import annotations

import abc
from collections import deque
from functools import cmp_to_key
from typing import Any

import yaml

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class ConfigError(ValueError):
    """The configuration document could not be read or written."""


class EventRecorder(abc.ABC):
    """Receives events emitted while an instance is being changed."""

    @abc.abstractmethod
    def event(self, event_type: str, reason: str, message: str) -> None:
        """Record one event."""


class FakeRecorder(EventRecorder):
    """Keeps events in memory as "<type> <reason> <message>" strings.

    With a buffer size, only the most recent events are kept.
    """

    def __init__(self, buffer_size: int | None = None) -> None:
        self.events: deque[str] = deque(maxlen=buffer_size)

    def event(self, event_type: str, reason: str, message: str) -> None:
        self.events.append(f"{event_type} {reason} {message}")


class _Loader(yaml.SafeLoader):
    """Safe loader that keeps timestamp-like values as strings."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class _Dumper(yaml.SafeDumper):
    """Block-style dumper that double-quotes and writes multi-line text literally."""

    def choose_scalar_style(self):
        if self.analysis is None:
            self.analysis = self.analyze_scalar(self.event.value)
        if (
            "\n" in self.event.value
            and not self.flow_level
            and not self.simple_key_context
            and self.analysis.allow_block
            and self.event.implicit[0]
        ):
            return "|"
        style = super().choose_scalar_style()
        return '"' if style == "'" else style


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _read_number(text: str, start: int, value: int) -> tuple[int, int]:
    end = start
    while end < len(text) and _is_digit(text[end]):
        value = value * 10 + int(text[end])
        end += 1
    return end, value


def _compare_text(a: str, b: str) -> int:
    """Order strings with letters after other characters and numbers by value."""
    for i, (ca, cb) in enumerate(zip(a, b)):
        if ca == cb:
            continue
        a_letter, b_letter = ca.isalpha(), cb.isalpha()
        if a_letter and b_letter:
            return -1 if ca < cb else 1
        if a_letter or b_letter:
            return -1 if b_letter else 1
        an = bn = 0
        if ca == "0" or cb == "0":
            for prev in reversed(a[:i]):
                if not _is_digit(prev):
                    break
                if prev != "0":
                    an = bn = 1
                    break
        a_end, an = _read_number(a, i, an)
        b_end, bn = _read_number(b, i, bn)
        if an != bn:
            return -1 if an < bn else 1
        if a_end != b_end:
            return -1 if a_end < b_end else 1
        return -1 if ca < cb else 1
    return (len(a) > len(b)) - (len(a) < len(b))


def _key_rank(key: Any) -> int:
    if isinstance(key, (bool, int, float)):
        return 0
    if isinstance(key, str):
        return 1
    return 2


def _compare_keys(a: Any, b: Any) -> int:
    rank_a, rank_b = _key_rank(a), _key_rank(b)
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if rank_a == 0:
        return (a > b) - (a < b)
    return _compare_text(str(a), str(b))


def _represent_mapping(dumper: yaml.SafeDumper, data: dict) -> yaml.Node:
    items = sorted(data.items(), key=cmp_to_key(lambda x, y: _compare_keys(x[0], y[0])))
    return dumper.represent_mapping("tag:yaml.org,2002:map", items)


_Dumper.add_representer(dict, _represent_mapping)


def parse_config(text: str) -> dict:
    """Parse a configuration document into a mapping; empty text gives an empty one."""
    try:
        cfg = yaml.load(text, Loader=_Loader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"couldn't parse the configuration: {exc}") from exc
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ConfigError("couldn't parse the configuration: the document is not a mapping")
    return cfg


def dump_config(cfg: dict) -> str:
    """Serialise a configuration mapping in block style with sorted keys."""
    try:
        return yaml.dump(
            cfg,
            Dumper=_Dumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=2,
        )
    except yaml.YAMLError as exc:
        raise ConfigError(f"couldn't write the configuration: {exc}") from exc