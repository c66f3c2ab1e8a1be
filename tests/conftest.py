"""Shared fixtures and builders for the test suite."""

from __future__ import annotations

import pytest

SAMPLE_FIELDS = [
    "MSG",          # 0  message type
    "3",            # 1  transmission type
    "1",            # 2  session id
    "1",            # 3  aircraft id
    "4CA2D6",       # 4  hex ident
    "1",            # 5  flight id
    "2023/05/01",   # 6  date generated
    "12:00:00.123", # 7  time generated
    "2023/05/01",   # 8  date logged
    "12:00:00.456", # 9  time logged
    "RYR1234 ",     # 10 callsign
    "37000",        # 11 altitude
    "451.5",        # 12 ground speed
    "278.3",        # 13 track
    "53.3492",      # 14 latitude
    "-6.2603",      # 15 longitude
    "-64",          # 16 vertical rate
    "7421",         # 17 squawk
    "0",            # 18 alert
    "1",            # 19 emergency
    "0",            # 20 spi
    "-1",           # 21 on ground
]


def make_line(**overrides: str) -> str:
    """Build an SBS1 ``MSG`` line, replacing fields by index (``f11="x"``)."""
    fields = list(SAMPLE_FIELDS)
    for key, value in overrides.items():
        fields[int(key.lstrip("f"))] = value
    return ",".join(fields)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
