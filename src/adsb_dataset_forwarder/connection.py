"""TCP connection to a dump1090 SBS1 (BaseStation) feed.

One connection per run, no reconnect::

    INIT → CONNECTING → (success) → CONNECTED → (EOF) → CLOSED
                      → (failure) → TransportReadError
    CONNECTED → (SIGTERM) → SHUTTING_DOWN

Exposed as an async generator via :meth:`FeedConnection.lines`.  A clean
EOF from the receiver ends the stream; connect failures, read errors and
over-long lines raise :class:`TransportReadError`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import AsyncIterator, Optional

from adsb_dataset_forwarder.errors import TransportReadError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 30003

# Longest line accepted from the feed.
MAX_LINE_BYTES = 64 * 1024


class ConnectionState(enum.Enum):
    """States of the feed connection."""

    INIT = "INIT"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    CLOSED = "CLOSED"
    SHUTTING_DOWN = "SHUTTING_DOWN"


class FeedConnection:
    """Reads newline-delimited text from the receiver.

    Parameters
    ----------
    host:
        Receiver host name or address.
    port:
        Receiver SBS1 output port.
    connect_timeout:
        Seconds to wait for the TCP connection to open.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        connect_timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._state = ConnectionState.INIT
        self._shutdown = asyncio.Event()
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def request_shutdown(self) -> None:
        """Stop yielding lines and close the socket."""
        self._set_state(ConnectionState.SHUTTING_DOWN)
        self._shutdown.set()
        if self._writer is not None:
            self._writer.close()

    async def lines(self) -> AsyncIterator[str]:
        """Async generator yielding one decoded line per feed record.

        Yields
        ------
        str
            The line with its ``\\r\\n`` / ``\\n`` terminator removed.
            Invalid UTF-8 is replaced rather than raising.

        Raises
        ------
        TransportReadError
            If the connection cannot be opened or fails while reading.
        """
        self._set_state(ConnectionState.CONNECTING)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port, limit=MAX_LINE_BYTES),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransportReadError(
                f"Timed out connecting to {self._host}:{self._port}"
            ) from exc
        except OSError as exc:
            raise TransportReadError(
                f"Error connecting to {self._host}:{self._port}: {exc}"
            ) from exc

        self._writer = writer
        self._set_state(ConnectionState.CONNECTED)

        try:
            while not self._shutdown.is_set():
                try:
                    raw = await reader.readline()
                except (asyncio.LimitOverrunError, ValueError) as exc:
                    raise TransportReadError(
                        f"Line exceeds {MAX_LINE_BYTES} bytes"
                    ) from exc
                except OSError as exc:
                    if self._shutdown.is_set():
                        break
                    raise TransportReadError(f"Error reading feed: {exc}") from exc

                if not raw:
                    logger.info("Feed closed by %s:%s", self._host, self._port)
                    break

                yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
        finally:
            self._writer = None
            writer.close()
            if self._state is not ConnectionState.SHUTTING_DOWN:
                self._set_state(ConnectionState.CLOSED)

    # ── helpers ─────────────────────────────────────────────────────

    def _set_state(self, new: ConnectionState) -> None:
        old = self._state
        self._state = new
        logger.info("Connection state: %s → %s", old.value, new.value)
