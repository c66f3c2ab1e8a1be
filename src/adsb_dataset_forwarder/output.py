"""Output sinks: DataSet ``addEvents`` over HTTPS and stdout (for dry runs).

DatasetSink
    POSTs each payload with a bearer write token.  Every request is bounded
    by a timeout so a stalled endpoint cannot hold the feed reader forever.
    The response body is logged but not interpreted; transport errors,
    timeouts and non-2xx statuses raise :class:`SinkDeliveryError`.

StdoutSink
    Writes each payload as one NDJSON line to ``sys.stdout.buffer``.
"""

from __future__ import annotations

import logging
import sys

import httpx

from adsb_dataset_forwarder.errors import SinkDeliveryError

logger = logging.getLogger(__name__)

DEFAULT_DATASET_URL = "https://app.scalyr.com/api/addEvents"


class StdoutSink:
    """Write payload bytes directly to stdout (for debugging and dry-run)."""

    async def send(self, payload: bytes) -> None:
        """Write *payload* followed by a newline to ``sys.stdout.buffer``.

        Raises
        ------
        BrokenPipeError
            If the stdout consumer has gone away.
        """
        try:
            sys.stdout.buffer.write(payload + b"\n")
            sys.stdout.buffer.flush()
        except BrokenPipeError:
            logger.warning("stdout broken — consumer likely exited")
            raise

    async def aclose(self) -> None:
        """No-op for stdout."""


class DatasetSink:
    """Deliver payloads to the DataSet ``addEvents`` endpoint.

    Parameters
    ----------
    write_token:
        DataSet API write token, sent as ``Authorization: Bearer``.
    url:
        Endpoint URL.
    timeout:
        Upper bound in seconds for one request (connect, write and read).
    transport:
        Optional ``httpx`` transport, used by tests to mock the endpoint.
    """

    def __init__(
        self,
        write_token: str,
        url: str = DEFAULT_DATASET_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {write_token}",
            },
        )

    async def send(self, payload: bytes) -> None:
        """POST *payload* and log the response body.

        Raises
        ------
        SinkDeliveryError
            If the request fails, times out, or the endpoint answers with a
            non-success status.
        """
        try:
            response = await self._client.post(self._url, content=payload)
        except httpx.TimeoutException as exc:
            raise SinkDeliveryError(f"DataSet request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise SinkDeliveryError(f"DataSet request failed: {exc}") from exc

        logger.info("Response: %s", response.text)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SinkDeliveryError(
                f"DataSet returned HTTP {exc.response.status_code}"
            ) from exc

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
