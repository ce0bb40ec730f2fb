"""Log handler setup for the reconciler: one JSON object per line, or plain text."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import LoggingConfig

# Attributes passed through ``extra=`` by the reconcile engine and API client.
RECONCILE_FIELDS = ("service", "nodebalancer", "port", "config_id", "elapsed_seconds")

_QUIET_LOGGERS = ("urllib3", "kubernetes", "kubernetes.client.rest")


class JSONFormatter(logging.Formatter):
    """Renders a record and its reconcile fields as a single JSON object.

    ``static_fields`` are stamped on every record, e.g. the cluster name when
    several controllers ship logs to the same sink.
    """

    def __init__(self, static_fields: dict[str, Any] | None = None) -> None:
        super().__init__()
        self._static = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self._static,
        }
        payload.update(
            (key, getattr(record, key)) for key in RECONCILE_FIELDS if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Plain text for running against a dev cluster; appends the NodeBalancer id when set."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        nb = getattr(record, "nodebalancer", None)
        return f"{line} (nodebalancer={nb})" if nb is not None else line


def configure_logging(config: LoggingConfig, cluster_name: str | None = None) -> None:
    """Replace the root logger's handlers with one stderr handler per ``config``."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    if config.format == "json":
        handler.setFormatter(JSONFormatter({"cluster": cluster_name} if cluster_name else None))
    else:
        handler.setFormatter(TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
