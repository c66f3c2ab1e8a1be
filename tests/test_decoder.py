"""Tests for the SBS1 line decoder."""

import time
from datetime import datetime, timezone

import pytest

from adsb_dataset_forwarder.decoder import (
    decode,
    parse_datetime,
    parse_flag,
    parse_float,
    parse_int,
)
from adsb_dataset_forwarder.models import Accepted, Rejected, RejectReason

from conftest import make_line


def _accept(line: str):
    result = decode(line)
    assert isinstance(result, Accepted), result
    return result.record


# ── structural rejection ────────────────────────────────────────────


def test_other_message_type_rejected() -> None:
    """A 22-field line with a tag other than ``MSG`` is rejected."""
    result = decode(make_line(f0="STA"))
    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.UNKNOWN_MESSAGE_TYPE


def test_lowercase_tag_rejected() -> None:
    """The tag comparison is exact."""
    result = decode(make_line(f0="msg"))
    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.UNKNOWN_MESSAGE_TYPE


def test_too_few_fields_rejected() -> None:
    """A ``MSG`` line with 21 fields is rejected."""
    line = ",".join(make_line().split(",")[:21])
    result = decode(line)
    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.TOO_FEW_FIELDS
    assert result.line == line


@pytest.mark.parametrize("line", ["", "   ", "MSG", "MSG,3,1,1", "SEL,,,,"])
def test_short_lines_rejected(line: str) -> None:
    """Short and empty lines never produce a record."""
    result = decode(line)
    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.TOO_FEW_FIELDS


def test_extra_fields_accepted() -> None:
    """Fields past index 21 are ignored."""
    record = _accept(make_line() + ",extra,stuff")
    assert record.on_ground is True


def test_surrounding_whitespace_trimmed() -> None:
    """Leading/trailing whitespace and the line terminator are stripped."""
    record = _accept("  " + make_line() + "\r\n")
    assert record.message_type == "MSG"
    assert record.on_ground is True


# ── field mapping ───────────────────────────────────────────────────


def test_full_field_mapping() -> None:
    """Every positional field lands in the documented attribute."""
    record = _accept(make_line())

    assert record.message_type == "MSG"
    assert record.transmission_type == 3
    assert record.session_id == "1"
    assert record.aircraft_id == "1"
    assert record.icao24 == "4CA2D6"
    assert record.flight_id == "1"
    assert record.generated_date == datetime(2023, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)
    assert record.logged_date == datetime(2023, 5, 1, 12, 0, 0, 456000, tzinfo=timezone.utc)
    assert record.callsign == "RYR1234"
    assert record.altitude == 37000
    assert record.ground_speed == 451.5
    assert record.track == 278.3
    assert record.lat == 53.3492
    assert record.lon == -6.2603
    assert record.vertical_rate == -64
    assert record.squawk == 7421
    assert record.alert is False
    assert record.emergency is True
    assert record.spi is False
    assert record.on_ground is True


def test_identifier_fields_not_trimmed() -> None:
    """Only the callsign is trimmed; id strings are kept verbatim."""
    record = _accept(make_line(f4=" 4CA2D6", f10="  EIN12  "))
    assert record.icao24 == " 4CA2D6"
    assert record.callsign == "EIN12"


def test_timestamp_is_decode_time() -> None:
    """``timestamp`` is the decode instant in nanoseconds, not a feed field."""
    before = time.time_ns()
    record = _accept(make_line(f6="1999/01/01", f7="00:00:00"))
    after = time.time_ns()

    assert isinstance(record.timestamp, str)
    assert before <= int(record.timestamp) <= after


def test_garbage_numeric_fields_use_defaults() -> None:
    """Non-numeric text in numeric fields yields zero, not a rejection."""
    record = _accept(make_line(f1="x", f11="FL370", f12="fast", f13="", f14="N53",
                               f15="?", f16="up", f17="squawk"))
    assert record.transmission_type == 0
    assert record.altitude == 0
    assert record.ground_speed == 0.0
    assert record.track == 0.0
    assert record.lat == 0.0
    assert record.lon == 0.0
    assert record.vertical_rate == 0
    assert record.squawk == 0
    # untouched fields still decode
    assert record.callsign == "RYR1234"


def test_sparse_message_decodes() -> None:
    """Typical transmission-type 4 line with most fields empty."""
    line = "MSG,4,1,1,4CA2D6,1,2023/05/01,12:00:00.000,2023/05/01,12:00:00.000,,,420,90,,,1024,,,,,0"
    record = _accept(line)
    assert record.transmission_type == 4
    assert record.callsign == ""
    assert record.altitude == 0
    assert record.ground_speed == 420.0
    assert record.track == 90.0
    assert record.vertical_rate == 1024
    assert record.alert is False
    assert record.on_ground is False


# ── date/time ───────────────────────────────────────────────────────


def test_date_pair_parses() -> None:
    """A valid date/time pair decodes to a UTC datetime."""
    assert parse_datetime("2023/05/01", "12:00:00") == datetime(
        2023, 5, 1, 12, 0, 0, tzinfo=timezone.utc
    )


def test_garbage_date_is_none() -> None:
    """An unparsable date yields None and the record is still accepted."""
    assert parse_datetime("garbage", "12:00:00") is None
    record = _accept(make_line(f6="garbage", f7="12:00:00"))
    assert record.generated_date is None
    assert record.logged_date is not None


@pytest.mark.parametrize(
    "date, time_of_day",
    [
        ("2023/02/30", "12:00:00"),  # impossible day
        ("2023/05/01", "25:00:00"),
        ("2023-05-01", "12:00:00"),
        ("2023/5/1", "12:00:00"),
        ("2023/05/01", ""),
        ("", ""),
        ("2023/05/01", "12:00:00."),
    ],
)
def test_invalid_dates_are_none(date: str, time_of_day: str) -> None:
    """Malformed or impossible date pairs decode to None."""
    assert parse_datetime(date, time_of_day) is None


def test_fractional_seconds() -> None:
    """Millisecond and nanosecond fractions are accepted."""
    assert parse_datetime("2023/05/01", "12:00:00.5").microsecond == 500000
    assert parse_datetime("2023/05/01", "12:00:00.123456789").microsecond == 123456


def test_long_fraction_is_truncated() -> None:
    """More than nine fractional digits still parse; extra digits are dropped."""
    parsed = parse_datetime("2023/05/01", "12:00:00.1234567891")
    assert parsed == datetime(2023, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


# ── coercion helpers ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1", True),
        ("0", False),
        ("-1", True),
        ("00", False),
        ("abc", False),
        ("", False),
        ("1.0", False),
        ("99999999999999999999", False),
    ],
)
def test_parse_flag(text: str, expected: bool) -> None:
    """Flags are true for any nonzero integer and false otherwise."""
    assert parse_flag(text) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("37000", 37000),
        ("-64", -64),
        ("+12", 12),
        ("007", 7),
        (" 12", 0),
        ("1_000", 0),
        ("12.5", 0),
        ("", 0),
    ],
)
def test_parse_int(text: str, expected: int) -> None:
    """Integers accept an optional sign and digits only."""
    assert parse_int(text) == expected


def test_parse_int_wraps_to_int32() -> None:
    """Values beyond 32 bits wrap; values beyond 64 bits fail to zero."""
    assert parse_int("2147483647") == 2147483647
    assert parse_int("2147483648") == -2147483648
    assert parse_int("4294967296") == 0
    assert parse_int("9223372036854775807") == -1
    assert parse_int("9223372036854775808") == 0


@pytest.mark.parametrize(
    "text, expected",
    [
        ("451.5", 451.5),
        ("-6.2603", -6.2603),
        ("1e3", 1000.0),
        (".5", 0.5),
        ("5.", 5.0),
        ("", 0.0),
        ("1,5", 0.0),
        (" 1.5", 0.0),
        ("1e39", 0.0),
    ],
)
def test_parse_float(text: str, expected: float) -> None:
    """Floats decode with a 0.0 fallback and a float32 range limit."""
    assert parse_float(text) == expected


def test_parse_float_narrows_precision() -> None:
    """Digits beyond float32 precision are lost."""
    value = parse_float("3.14159265358979")
    assert value != 3.14159265358979
    assert value == pytest.approx(3.1415927, abs=1e-7)
