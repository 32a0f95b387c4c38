"""
Canonical order timestamp normalization helpers.

Design:
- **Internal form**: epoch milliseconds (int). Everything else is derived.
- **Storage / emission**: tz-aware UTC `datetime`, ISO8601 strings or
  calendar dates (`YYYY-MM-DD`) for accrual/cash-basis reporting.

Rules:
- Naive `datetime` (no tzinfo) is assumed to be **UTC**.
- ISO8601 strings ending with 'Z' are treated as UTC.
- Numeric epoch: values >= 1e12 are treated as milliseconds, otherwise seconds.
- Firestore timestamps arrive as `DatetimeWithNanoseconds` (a datetime), as
  protobuf `Timestamp` (`ToMilliseconds()`), or serialized as
  `{"seconds": ..., "nanoseconds": ...}` / `{"_seconds": ...}` maps.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")

_EPOCH_MS_THRESHOLD = 1e12
# Representable by `datetime` in every timezone.
_MIN_MS = int(datetime(1, 1, 2, tzinfo=UTC).timestamp() * 1000)
_MAX_MS = int(datetime(9999, 12, 30, tzinfo=UTC).timestamp() * 1000)

_HISTORY_LIST_KEYS = ("statusHistory", "history")
_HISTORY_LABEL_KEYS = ("status", "state", "label")
_HISTORY_TIME_KEYS = ("at", "timestamp", "date", "time", "ts")


def _from_number(value: float) -> int:
    if abs(value) < _EPOCH_MS_THRESHOLD:
        return int(round(value * 1000))
    return int(round(value))


def _from_mapping(value: Mapping[str, Any]) -> Optional[int]:
    seconds = value.get("seconds", value.get("_seconds"))
    if seconds is None or isinstance(seconds, bool):
        return None
    nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
    try:
        return int(float(seconds) * 1000 + float(nanos) / 1_000_000)
    except (TypeError, ValueError):
        return None


def _from_string(value: str) -> Optional[int]:
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(round(dt.timestamp() * 1000))


def _coerce_ms(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            dt = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
            return int(round(dt.timestamp() * 1000))
        if isinstance(value, (int, float)):
            if value != value:  # NaN
                return None
            return _from_number(float(value))
        if isinstance(value, str):
            return _from_string(value)
        if isinstance(value, Mapping):
            return _from_mapping(value)

        to_ms = getattr(value, "ToMilliseconds", None)
        if callable(to_ms):
            return int(to_ms())
        ts = getattr(value, "timestamp", None)
        if callable(ts):
            return int(round(float(ts()) * 1000))
    except (OverflowError, OSError, TypeError, ValueError):
        return None
    return None


def to_epoch_ms(value: Any) -> Optional[int]:
    """
    Convert one raw temporal value to epoch milliseconds.

    Returns None for absent values, for anything that does not parse and for
    instants outside the years 1..9999 that `datetime` can represent; a bad
    candidate is never fatal.
    """
    ms = _coerce_ms(value)
    if ms is None or not _MIN_MS <= ms <= _MAX_MS:
        return None
    return ms


def first_epoch_ms(*candidates: Any) -> Optional[int]:
    """
    Return the first candidate that resolves to a non-zero instant.

    Callers encode priority by argument order.
    """
    for candidate in candidates:
        ms = to_epoch_ms(candidate)
        if ms:
            return ms
    return None


def _earliest(values: Iterable[Optional[int]]) -> Optional[int]:
    best: Optional[int] = None
    for ms in values:
        if ms is None:
            continue
        best = ms if best is None else min(best, ms)
    return best


def extract_from_history(data: Mapping[str, Any], labels: Iterable[str]) -> Optional[int]:
    """
    Earliest instant at which the document reached any of `labels`.

    Looks at the array form first (`statusHistory: [{status, at|timestamp|...}]`)
    and falls back to the map form (`statusTimestamps: {label: ts}`). Labels
    match case-insensitively. The minimum wins so that the first time a state
    was reached beats later re-entries.
    """
    wanted = {str(label).lower() for label in labels}

    history = None
    for key in _HISTORY_LIST_KEYS:
        candidate = data.get(key)
        if isinstance(candidate, list):
            history = candidate
            break

    if history is not None:

        def _entry_ms(entry: Any) -> Optional[int]:
            if not isinstance(entry, Mapping):
                return None
            label = next((entry.get(k) for k in _HISTORY_LABEL_KEYS if entry.get(k)), "")
            if str(label).lower() not in wanted:
                return None
            return first_epoch_ms(*(entry.get(k) for k in _HISTORY_TIME_KEYS))

        best = _earliest(_entry_ms(e) for e in history)
        if best is not None:
            return best

    shipping = data.get("shippingInfo")
    stamps = (
        data.get("statusTimestamps")
        or data.get("shippingStatusTimestamps")
        or (shipping.get("statusTimestamps") if isinstance(shipping, Mapping) else None)
    )
    if isinstance(stamps, Mapping):
        return _earliest(to_epoch_ms(v) for k, v in stamps.items() if str(k).lower() in wanted)
    return None


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=UTC)


def ms_to_iso(ms: int) -> str:
    """ISO8601 in UTC with millisecond precision, e.g. '2023-11-14T22:13:20.000+00:00'."""

    return ms_to_datetime(ms).isoformat(timespec="milliseconds")


def ms_to_date(ms: int) -> str:
    """Calendar date (UTC) without time: 'YYYY-MM-DD'."""

    return ms_to_datetime(ms).date().isoformat()


def to_iso(value: Any) -> Optional[str]:
    """
    Best-effort ISO rendering of a raw temporal value.

    Unparseable strings are passed through unchanged (the caller stored them
    that way on purpose); anything else unparseable becomes None.
    """
    ms = to_epoch_ms(value)
    if ms is not None:
        return ms_to_iso(ms)
    if isinstance(value, str) and value.strip():
        return value
    return None


def utc_now() -> datetime:
    """Return tz-aware current time in UTC."""

    return datetime.now(tz=UTC)
