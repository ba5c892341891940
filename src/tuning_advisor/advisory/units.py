"""
tuning_advisor.advisory.units

Size and duration parsing for Spring Boot, JVM and PostgreSQL value syntaxes.

Responsibilities:
- Parse data sizes (`64MB`, `2g`, `128kB`) into bytes.
- Parse PostgreSQL memory settings whose bare numbers are in a base unit.
- Parse durations in Spring's simple form, ISO-8601, or bare numbers.
- Render byte counts back in each ecosystem's preferred style.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Literal

KB = 1024
MB = 1024 * KB
GB = 1024 * MB
TB = 1024 * GB

_SIZE_RE = re.compile(r"^([+-]?\d+(?:\.\d+)?)\s*([a-zA-Z]*)$")
_SIZE_UNITS: dict[str, int] = {
    "b": 1,
    "k": KB,
    "kb": KB,
    "m": MB,
    "mb": MB,
    "g": GB,
    "gb": GB,
    "t": TB,
    "tb": TB,
}

_DURATION_RE = re.compile(r"^([+-]?\d+(?:\.\d+)?)\s*([a-zA-Z]*)$")
_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
# Values are expressed in microseconds so `ns` can be represented (rounded).
_DURATION_UNITS: dict[str, float] = {
    "ns": 0.001,
    "us": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60 * 1_000_000.0,
    "min": 60 * 1_000_000.0,
    "h": 3_600 * 1_000_000.0,
    "d": 86_400 * 1_000_000.0,
}

SizeStyle = Literal["spring", "jvm", "postgres"]


class UnitParseError(ValueError):
    pass


def parse_data_size(text: str | int, default_unit: str = "B") -> int:
    """
    Parse a data size into bytes. Units are binary multiples and case-insensitive,
    so `64MB`, `64mb`, `64m` and PostgreSQL's `65536kB` all mean the same size.
    """

    if isinstance(text, bool):
        raise UnitParseError(f"not a data size: {text!r}")
    if isinstance(text, int):
        text = str(text)
    m = _SIZE_RE.match(str(text).strip())
    if not m:
        raise UnitParseError(f"not a data size: {text!r}")
    number, unit = m.group(1), (m.group(2) or default_unit).lower()
    if unit not in _SIZE_UNITS:
        raise UnitParseError(f"unknown size unit {unit!r} in {text!r}")
    return int(float(number) * _SIZE_UNITS[unit])


def parse_pg_memory(text: str | int, unit_kb: int = 1) -> int:
    """
    PostgreSQL memory parameters take bare numbers in the parameter's base unit:
    8 kB blocks for `shared_buffers`/`effective_cache_size`, kB for `work_mem`.
    """

    raw = str(text).strip()
    if re.fullmatch(r"[+-]?\d+", raw):
        return int(raw) * unit_kb * KB
    return parse_data_size(raw)


def parse_duration(text: str | int | float, default_unit: str = "ms") -> timedelta:
    if isinstance(text, bool):
        raise UnitParseError(f"not a duration: {text!r}")
    raw = str(text).strip()
    if raw[:1] in ("P", "p"):
        return _parse_iso_duration(raw)

    m = _DURATION_RE.match(raw)
    if not m:
        raise UnitParseError(f"not a duration: {text!r}")
    unit = (m.group(2) or default_unit).lower()
    if unit not in _DURATION_UNITS:
        raise UnitParseError(f"unknown duration unit {unit!r} in {text!r}")
    return timedelta(microseconds=float(m.group(1)) * _DURATION_UNITS[unit])


def _parse_iso_duration(raw: str) -> timedelta:
    m = _ISO_DURATION_RE.match(raw)
    # "P" and "PT" alone match the pattern but carry no value.
    if not m or raw.upper() in ("P", "PT") or raw.upper().endswith("T"):
        raise UnitParseError(f"not an ISO-8601 duration: {raw!r}")
    parts = {k: float(v) for k, v in m.groupdict().items() if v is not None}
    return timedelta(
        days=parts.get("days", 0.0),
        hours=parts.get("hours", 0.0),
        minutes=parts.get("minutes", 0.0),
        seconds=parts.get("seconds", 0.0),
    )


def to_millis(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)


def format_data_size(num_bytes: int, style: SizeStyle = "spring") -> str:
    """
    Render using the largest unit that divides the value exactly.
    PostgreSQL has no byte unit, so sizes are rounded up to whole kB there.
    """

    if style == "jvm":
        units = [("g", GB), ("m", MB), ("k", KB)]
        fallback = f"{num_bytes}"
    elif style == "postgres":
        units = [("TB", TB), ("GB", GB), ("MB", MB), ("kB", KB)]
        num_bytes = -(-num_bytes // KB) * KB
        fallback = f"{num_bytes // KB}kB"
    else:
        units = [("TB", TB), ("GB", GB), ("MB", MB), ("KB", KB)]
        fallback = f"{num_bytes}B"

    if num_bytes == 0:
        return fallback
    for suffix, size in units:
        if num_bytes % size == 0:
            return f"{num_bytes // size}{suffix}"
    return fallback


# --- Module Notes -----------------------------------------------------------
# Spring's DataSize uses binary multiples despite the SI-looking suffixes; the JVM
# and PostgreSQL do the same, which is what lets one parser serve all three.
