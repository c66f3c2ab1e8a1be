"""Build DataSet ``addEvents`` payloads from batches of decoded records.

Payload layout::

    {
      "session": "<uuid4>",
      "sessionInfo": {},
      "events": [
        {"parser": "adsb", "ts": "<ns>", "sev": 3,
         "attrs": {"message": {...}, "source": "...", "collector": "...", "parser": "adsb"}},
        ...
      ],
      "threads": []
    }

One event per record, in the order the records were offered.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

import orjson

from adsb_dataset_forwarder.models import DecodedRecord

PARSER_NAME = "adsb"
EVENT_SEVERITY = 3


def _encode_default(obj: Any) -> Any:
    """Render datetimes as RFC 3339 in UTC with trailing fraction zeros trimmed.

    ``2023-05-01T12:00:00.123Z`` rather than orjson's fixed six digits.
    """
    if isinstance(obj, datetime):
        if obj.tzinfo is not None:
            obj = obj.astimezone(timezone.utc)
        text = obj.replace(tzinfo=None, microsecond=0).isoformat()
        if obj.microsecond:
            text += f".{obj.microsecond:06d}".rstrip("0")
        return text + "Z"
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def build_event(record: DecodedRecord, source: str, collector: str) -> dict[str, Any]:
    """Wrap a single record as an ``addEvents`` event object."""
    return {
        "parser": PARSER_NAME,
        "ts": record.timestamp,
        "sev": EVENT_SEVERITY,
        "attrs": {
            "message": record.to_dict(),
            "source": source,
            "collector": collector,
            "parser": PARSER_NAME,
        },
    }


def build_payload(
    records: Iterable[DecodedRecord],
    session: str,
    source: str,
    collector: str,
) -> bytes:
    """Serialize *records* into one ``addEvents`` request body.

    Parameters
    ----------
    records:
        The batch, in arrival order.
    session:
        DataSet session identifier shared by every request of this run.
    source:
        Label of the upstream receiver (e.g. ``"dump1090"``).
    collector:
        Identifier of this collector.

    Returns
    -------
    bytes
        ``orjson``-serialized payload.  Datetimes are emitted as RFC 3339
        in UTC with a ``Z`` suffix and no trailing fractional zeros.
    """
    payload = {
        "session": session,
        "sessionInfo": {},
        "events": [build_event(r, source, collector) for r in records],
        "threads": [],
    }
    return orjson.dumps(
        payload, default=_encode_default, option=orjson.OPT_PASSTHROUGH_DATETIME
    )
