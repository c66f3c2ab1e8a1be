"""Logging filter that keeps the DataSet write token out of log output.

Secret values are collected from the resolved configuration: any string
whose key matches one of ``logging.redact_patterns`` (shell-style globs,
case-insensitive).  Every log record passing through
:class:`SecretRedactingFilter` has those values replaced with
``[REDACTED]`` in its message and arguments.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Any, Iterable

REDACTED = "[REDACTED]"


class SecretRedactingFilter(logging.Filter):
    """Scrub known secret values from log records; never drops a record."""

    def __init__(self, secret_values: Iterable[str] | None = None) -> None:
        super().__init__()
        # single characters would redact half of every message
        self._secrets = sorted(
            {s for s in (secret_values or []) if s and len(s) > 1},
            key=len,
            reverse=True,
        )

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        record.msg = self._redact(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: self._redact(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._redact(a) for a in record.args)
        return True

    def _redact(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for secret in self._secrets:
            value = value.replace(secret, REDACTED)
        return value


def collect_secret_values(config: dict[str, Any], patterns: Iterable[str]) -> list[str]:
    """Return string values in *config* whose keys match any of *patterns*.

    Parameters
    ----------
    config:
        Nested configuration dict (e.g. ``dataclasses.asdict(AppConfig)``).
    patterns:
        Globs matched against keys, e.g. ``("*token*",)``.
    """
    lowered = [p.lower() for p in patterns]
    found: list[str] = []

    def _walk(obj: Any) -> None:
        if isinstance(obj, dict):
            for key, val in obj.items():
                if isinstance(val, str) and any(
                    fnmatch.fnmatch(str(key).lower(), p) for p in lowered
                ):
                    found.append(val)
                _walk(val)
        elif isinstance(obj, (list, tuple)):
            for item in obj:
                _walk(item)

    _walk(config)
    return found
