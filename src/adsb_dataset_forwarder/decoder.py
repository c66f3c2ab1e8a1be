"""Decode SBS1 (BaseStation) text lines into :class:`DecodedRecord` objects.

Decode pipeline::

    raw line
      │
      ├─ fewer than 22 comma-separated fields → Rejected(TOO_FEW_FIELDS)
      ├─ field 0 ≠ "MSG"                      → Rejected(UNKNOWN_MESSAGE_TYPE)
      └─ otherwise                            → Accepted(DecodedRecord)

Field layout (0-indexed)::

     0 message type      6 date generated    12 ground speed   18 alert
     1 transmission type 7 time generated    13 track          19 emergency
     2 session id        8 date logged       14 latitude       20 spi
     3 aircraft id       9 time logged       15 longitude      21 on ground
     4 hex ident        10 callsign          16 vertical rate
     5 flight id        11 altitude          17 squawk

Numeric and boolean fields are decoded best-effort: text that does not parse
becomes ``0``, ``0.0`` or ``False`` and the record is still accepted.
"""

from __future__ import annotations

import re
import struct
import time
from datetime import datetime, timezone
from typing import Optional

from adsb_dataset_forwarder.models import (
    MESSAGE_TYPE_MSG,
    Accepted,
    DecodedRecord,
    DecodeResult,
    Rejected,
    RejectReason,
)

SBS1_FIELD_COUNT = 22

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)
_DATETIME_RE = re.compile(
    r"(\d{4})/(\d{2})/(\d{2}) (\d{1,2}):(\d{2}):(\d{2})(?:\.(\d+))?"
)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def decode(line: str) -> DecodeResult:
    """Decode a single SBS1 line.

    Parameters
    ----------
    line:
        One line from the feed, with or without its terminator.

    Returns
    -------
    Accepted
        Wrapping the decoded record when the line is a ``MSG`` report with
        at least 22 fields.
    Rejected
        When the line is structurally invalid.  Rejection is an outcome,
        never an exception.
    """
    parts = line.strip().split(",")

    if len(parts) < SBS1_FIELD_COUNT:
        return Rejected(RejectReason.TOO_FEW_FIELDS, line)
    if parts[0] != MESSAGE_TYPE_MSG:
        return Rejected(RejectReason.UNKNOWN_MESSAGE_TYPE, line)

    record = DecodedRecord(
        timestamp=str(time.time_ns()),
        message_type=MESSAGE_TYPE_MSG,
        transmission_type=parse_int(parts[1]),
        session_id=parts[2],
        aircraft_id=parts[3],
        icao24=parts[4],
        flight_id=parts[5],
        generated_date=parse_datetime(parts[6], parts[7]),
        logged_date=parse_datetime(parts[8], parts[9]),
        callsign=parts[10].strip(),
        altitude=parse_int(parts[11]),
        ground_speed=parse_float(parts[12]),
        track=parse_float(parts[13]),
        lat=parse_float(parts[14]),
        lon=parse_float(parts[15]),
        vertical_rate=parse_int(parts[16]),
        squawk=parse_int(parts[17]),
        alert=parse_flag(parts[18]),
        emergency=parse_flag(parts[19]),
        spi=parse_flag(parts[20]),
        on_ground=parse_flag(parts[21]),
    )
    return Accepted(record)


# ── field coercion ──────────────────────────────────────────────────


def _parse_int64(text: str) -> Optional[int]:
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def parse_int(text: str) -> int:
    """Parse a decimal integer into signed 32-bit range, ``0`` on failure.

    Values that fit in 64 bits but not in 32 wrap around, as a C-style
    narrowing cast would.
    """
    value = _parse_int64(text)
    if value is None:
        return 0
    return (value + 2**31) % 2**32 - 2**31


def parse_float(text: str) -> float:
    """Parse a float narrowed to 32-bit precision, ``0.0`` on failure.

    The returned value is the shortest decimal that maps back to the same
    float32, so ``"37.7749"`` yields ``37.7749`` rather than its widened
    binary neighbour.
    """
    if not _FLOAT_RE.fullmatch(text):
        return 0.0
    try:
        packed = struct.pack("<f", float(text))
    except OverflowError:
        return 0.0
    narrowed = struct.unpack("<f", packed)[0]
    return _shortest_float32(narrowed, packed)


def _shortest_float32(value: float, packed: bytes) -> float:
    if value != value or value in (float("inf"), float("-inf")):
        return value
    for precision in range(1, 10):
        candidate = float(f"{value:.{precision}g}")
        if struct.pack("<f", candidate) == packed:
            return candidate
    return value


def parse_flag(text: str) -> bool:
    """Return ``True`` for a nonzero integer, ``False`` otherwise."""
    value = _parse_int64(text)
    return bool(value)


def parse_datetime(date: str, time_of_day: str) -> Optional[datetime]:
    """Combine SBS1 ``YYYY/MM/DD`` and ``HH:MM:SS[.fff]`` fields into UTC.

    Fractional seconds of any length are accepted; digits past the
    microsecond are truncated.  Returns ``None`` when either part is
    malformed or names an impossible date.
    """
    match = _DATETIME_RE.fullmatch(f"{date} {time_of_day}")
    if match is None:
        return None

    year, month, day, hour, minute, second, fraction = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None
