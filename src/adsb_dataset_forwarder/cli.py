"""Click CLI for the ADS-B DataSet forwarder.

Entry point registered in ``pyproject.toml`` as ``adsb-dataset-forwarder``::

    adsb-dataset-forwarder --dump1090-host 10.0.0.5          # ship to DataSet
    adsb-dataset-forwarder --dump1090-host 10.0.0.5 --dry-run  # 5 records to stdout
    adsb-dataset-forwarder -c config.json --validate-config

Every option can also be given through the environment variable named in
its help text.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import AsyncIterator, Optional

import click
import jsonschema
import orjson

from adsb_dataset_forwarder import __version__
from adsb_dataset_forwarder.config import AppConfig, load_config
from adsb_dataset_forwarder.connection import FeedConnection
from adsb_dataset_forwarder.decoder import decode
from adsb_dataset_forwarder.errors import ConfigurationError, TransportReadError
from adsb_dataset_forwarder.forwarder import BatchForwarder
from adsb_dataset_forwarder.models import Rejected
from adsb_dataset_forwarder.output import DatasetSink, StdoutSink
from adsb_dataset_forwarder.redactor import SecretRedactingFilter, collect_secret_values

logger = logging.getLogger("adsb_dataset_forwarder")

DRY_RUN_RECORDS = 5


# ── structured JSON log formatter ───────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON to stderr."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode()


def _setup_logging(level: str, secret_values: list[str] | None = None) -> None:
    """Configure the root logger with JSON output on stderr + redaction."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    # handler-level so records from every logger pass through it
    handler.addFilter(SecretRedactingFilter(secret_values))
    root.addHandler(handler)


# ── pipeline ────────────────────────────────────────────────────────


@dataclass
class PipelineResult:
    """Counts for one pipeline run."""

    lines: int = 0
    accepted: int = 0
    rejected: int = 0
    rejected_by_reason: Counter = field(default_factory=Counter)


async def run_pipeline(
    lines: AsyncIterator[str],
    forwarder: BatchForwarder,
    max_records: Optional[int] = None,
    result: Optional[PipelineResult] = None,
) -> PipelineResult:
    """Decode every line and feed accepted records to *forwarder*.

    The forwarder is closed on the way out, whether the stream ended, hit
    *max_records*, or raised, so the final partial batch is always shipped.
    Pass *result* to keep the counts when the stream raises.
    """
    if result is None:
        result = PipelineResult()
    try:
        async for line in lines:
            result.lines += 1
            outcome = decode(line)
            if isinstance(outcome, Rejected):
                result.rejected += 1
                result.rejected_by_reason[outcome.reason.value] += 1
                logger.debug("Skipped line (%s): %r", outcome.reason.value, line)
                continue

            result.accepted += 1
            await forwarder.offer(outcome.record)
            if max_records is not None and result.accepted >= max_records:
                logger.info("Dry run complete — decoded %d records", result.accepted)
                break
    finally:
        aclose = getattr(lines, "aclose", None)
        if aclose is not None:
            await aclose()
        await forwarder.close()
    return result


async def _run(cfg: AppConfig, output_mode: str, dry_run: bool) -> PipelineResult:
    """Wire connection → decoder → forwarder → sink and run until EOF or signal."""
    loop = asyncio.get_running_loop()

    conn = FeedConnection(
        cfg.source.host,
        cfg.source.port,
        connect_timeout=cfg.source.connect_timeout_seconds,
    )
    if output_mode == "stdout":
        sink = StdoutSink()
    else:
        sink = DatasetSink(
            cfg.dataset.write_token,
            url=cfg.dataset.url,
            timeout=cfg.dataset.timeout_seconds,
        )
    forwarder = BatchForwarder(
        sink,
        cfg.batch.size,
        source=cfg.source.name,
        collector=cfg.dataset.collector,
        double_buffer=cfg.batch.double_buffer,
    )

    # --- signal handling ---
    def _handle_signal() -> None:
        logger.info("Received shutdown signal")
        conn.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        with contextlib.suppress(NotImplementedError):  # Windows
            loop.add_signal_handler(sig, _handle_signal)

    result = PipelineResult()
    try:
        await run_pipeline(
            conn.lines(),
            forwarder,
            max_records=DRY_RUN_RECORDS if dry_run else None,
            result=result,
        )
    finally:
        await sink.aclose()
        stats = forwarder.stats
        logger.info(
            "Pipeline shut down (lines=%d, accepted=%d, rejected=%d, "
            "batches_sent=%d, batches_failed=%d, records_dropped=%d)",
            result.lines,
            result.accepted,
            result.rejected,
            stats.batches_sent,
            stats.batches_failed,
            stats.records_dropped,
        )
    return result


# ── CLI ─────────────────────────────────────────────────────────────


@click.command()
@click.option("--dataset-api-write-token", envvar="DATASET_API_WRITE_TOKEN",
              default=None, help="DataSet write token [env: DATASET_API_WRITE_TOKEN].")
@click.option("--dump1090-host", envvar="DUMP1090_HOST", default=None,
              help="dump1090 host [env: DUMP1090_HOST].")
@click.option("--dump1090-port", envvar="DUMP1090_PORT", type=click.IntRange(1, 65535),
              default=None, help="dump1090 SBS1 port, default 30003 [env: DUMP1090_PORT].")
@click.option("--batch-size", envvar="BATCH_SIZE", type=click.IntRange(min=1),
              default=None, help="Records per payload, default 500 [env: BATCH_SIZE].")
@click.option("--collector-source", envvar="COLLECTOR_SOURCE", default=None,
              help="Receiver label, default 'dump1090' [env: COLLECTOR_SOURCE].")
@click.option("--dataset-url", envvar="DATASET_URL", default=None,
              help="addEvents endpoint URL [env: DATASET_URL].")
@click.option("--send-timeout", envvar="DATASET_SEND_TIMEOUT",
              type=click.FloatRange(min=0, min_open=True), default=None,
              help="Seconds before a send is abandoned, default 10 [env: DATASET_SEND_TIMEOUT].")
@click.option("--double-buffer", is_flag=True,
              help="Keep reading the feed while a batch is being sent.")
@click.option("-o", "--output", "output_mode", type=click.Choice(["dataset", "stdout"]),
              envvar="ADSB_FORWARDER_OUTPUT", default="dataset",
              help="Where payloads go (default: dataset).")
@click.option("-c", "--config", "config_path", envvar="ADSB_FORWARDER_CONFIG",
              default=None, help="JSON config file [env: ADSB_FORWARDER_CONFIG].")
@click.option("--log-level", envvar="ADSB_FORWARDER_LOG_LEVEL", default=None,
              type=click.Choice(["debug", "info", "warn", "error"]),
              help="Log verbosity.")
@click.option("--dry-run", is_flag=True, help="Print 5 decoded records to stdout then exit.")
@click.option("--validate-config", "validate_only", is_flag=True,
              help="Validate config and exit.")
@click.version_option(__version__)
def main(
    dataset_api_write_token: Optional[str],
    dump1090_host: Optional[str],
    dump1090_port: Optional[int],
    batch_size: Optional[int],
    collector_source: Optional[str],
    dataset_url: Optional[str],
    send_timeout: Optional[float],
    double_buffer: bool,
    output_mode: str,
    config_path: Optional[str],
    log_level: Optional[str],
    dry_run: bool,
    validate_only: bool,
) -> None:
    """Forward dump1090 SBS1 messages to DataSet in batches."""
    if dry_run:
        output_mode = "stdout"

    overrides = {
        "dataset.write_token": dataset_api_write_token,
        "source.host": dump1090_host,
        "source.port": dump1090_port,
        "batch.size": batch_size,
        "source.name": collector_source,
        "dataset.url": dataset_url,
        "dataset.timeout_seconds": send_timeout,
        "batch.double_buffer": True if double_buffer else None,
        "logging.level": log_level,
    }

    # --- load + validate config ---
    try:
        cfg = load_config(
            config_path,
            overrides=overrides,
            require_write_token=output_mode == "dataset",
        )
    except (ConfigurationError, jsonschema.ValidationError) as exc:
        message = exc.message if isinstance(exc, jsonschema.ValidationError) else str(exc)
        click.echo(f"Config error: {message}", err=True)
        raise SystemExit(1) from exc

    # --- setup logging with secret redaction ---
    secret_values = collect_secret_values(asdict(cfg), cfg.logging.redact_patterns)
    _setup_logging(cfg.logging.level, secret_values)

    if validate_only:
        click.echo("Configuration is valid.", err=True)
        raise SystemExit(0)

    logger.info(
        "Starting adsb-dataset-forwarder %s (source=%s:%d, batch_size=%d, output=%s)",
        __version__,
        cfg.source.host,
        cfg.source.port,
        cfg.batch.size,
        output_mode,
    )

    try:
        asyncio.run(_run(cfg, output_mode, dry_run))
    except TransportReadError as exc:
        logger.error("Feed failed: %s", exc)
        raise SystemExit(1) from exc
    except BrokenPipeError:
        raise SystemExit(0)

    logger.info("Exiting application...")
