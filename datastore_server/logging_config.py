"""Console logging for the datastore server modules and the key CLI."""

from __future__ import annotations

import logging
import os
import sys

# Logger shared by config loading and the storage adapter.
log = logging.getLogger("datastore_server")


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Send datastore logs to stdout.

    A stdout handler is attached to the root logger only when nothing else
    (pytest, an embedding application) has installed one already.

    Args:
        level: Level name or number. Defaults to ``LOG_LEVEL`` from the
            environment, then ``INFO``.

    Returns:
        logging.Logger: The ``datastore_server`` logger.
    """
    resolved_level = _coerce_level(level)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
        )
        root.addHandler(handler)

    root.setLevel(resolved_level)

    # S3 clients log every request and retry below WARNING
    for name in ("boto3", "botocore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)

    log.setLevel(resolved_level)
    log.propagate = True
    log.debug("Datastore logging at level %s", logging.getLevelName(resolved_level))
    return log


def _coerce_level(level: str | int | None) -> int:
    """Map a level name such as ``"warning"`` to its number; unknown names mean ``INFO``."""
    candidate = level if level is not None else os.getenv("LOG_LEVEL", "INFO")

    if isinstance(candidate, int):
        return candidate

    if isinstance(candidate, str):
        numeric = logging.getLevelName(candidate.upper())
        if isinstance(numeric, int):
            return numeric

    return logging.INFO
