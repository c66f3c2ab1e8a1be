"""Dataclass models for decoded SBS1 messages and decode outcomes.

Attribute names of :class:`DecodedRecord` are the JSON keys shipped to
DataSet, so :meth:`DecodedRecord.to_dict` can be handed straight to
``orjson.dumps()``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Optional, Union

MESSAGE_TYPE_MSG = "MSG"


@dataclass
class DecodedRecord:
    """One accepted ``MSG`` line from the SBS1 feed.

    ``timestamp`` is the decode instant in nanoseconds since the epoch and is
    always serialized.  Every other field is omitted from :meth:`to_dict`
    when it holds its zero value.
    """

    timestamp: str
    message_type: str = MESSAGE_TYPE_MSG
    transmission_type: int = 0
    session_id: str = ""
    aircraft_id: str = ""
    icao24: str = ""
    flight_id: str = ""
    generated_date: Optional[datetime] = None
    logged_date: Optional[datetime] = None
    callsign: str = ""
    altitude: int = 0
    ground_speed: float = 0.0
    track: float = 0.0
    lat: float = 0.0
    lon: float = 0.0
    vertical_rate: int = 0
    squawk: int = 0
    alert: bool = False
    emergency: bool = False
    spi: bool = False
    on_ground: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the ``message`` object for an outbound event."""
        out: dict[str, Any] = {"timestamp": self.timestamp}
        for f in fields(self):
            if f.name == "timestamp":
                continue
            value = getattr(self, f.name)
            # bool is an int subclass, so False/0/0.0/""/None all drop here
            if value is None or value == 0 or value == "":
                continue
            out[f.name] = value
        return out


class RejectReason(enum.Enum):
    """Why a line was not decoded."""

    TOO_FEW_FIELDS = "too_few_fields"
    UNKNOWN_MESSAGE_TYPE = "unknown_message_type"


@dataclass(frozen=True)
class Accepted:
    """The line decoded into :attr:`record`."""

    record: DecodedRecord


@dataclass(frozen=True)
class Rejected:
    """The line was structurally invalid and should be dropped."""

    reason: RejectReason
    line: str = ""


DecodeResult = Union[Accepted, Rejected]
