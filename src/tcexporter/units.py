"""Parsing for human-written durations ("1s", "1h30m") and sizes ("10MB")."""

from __future__ import annotations

import math
import re
from datetime import timedelta
from typing import Union

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h|d)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?i?B?)\s*$", re.IGNORECASE)

_SIZE_UNITS = {
    "": 1,
    "B": 1,
    "K": 1000, "KB": 1000, "KIB": 1024, "KI": 1024,
    "M": 1000 ** 2, "MB": 1000 ** 2, "MIB": 1024 ** 2, "MI": 1024 ** 2,
    "G": 1000 ** 3, "GB": 1000 ** 3, "GIB": 1024 ** 3, "GI": 1024 ** 3,
    "T": 1000 ** 4, "TB": 1000 ** 4, "TIB": 1024 ** 4, "TI": 1024 ** 4,
}


def _seconds(value: float, original: object) -> timedelta:
    if not math.isfinite(value):
        raise ValueError(f"duration must be finite: {original!r}")
    try:
        return timedelta(seconds=value)
    except OverflowError as e:
        raise ValueError(f"duration out of range: {original!r}") from e


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Parse a Go-style duration string such as "500ms", "168h" or "1h30m".

    Bare numbers are taken as seconds. Non-finite or out-of-range values
    raise ValueError.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError as e:
            raise ValueError(f"duration out of range: {value!r}") from e
        return _seconds(number, value)

    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    try:
        number = float(text)
    except ValueError:
        pass
    else:
        return _seconds(number, value)

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return _seconds(sign * seconds, value)


def parse_size(value: Union[str, int]) -> int:
    """Parse a byte size like "10MB", "512KiB" or "1048576" into bytes."""
    if isinstance(value, int):
        return value

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f"invalid size: {value!r}")

    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.upper())
    if multiplier is None:
        raise ValueError(f"invalid size unit in {value!r}")
    return int(float(number) * multiplier)


def format_uptime(seconds: float) -> str:
    """Render elapsed seconds as e.g. "3h2m5s"."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"
