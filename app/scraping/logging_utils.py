"""
Structured logging helpers for scraping and scheduling workflows.
"""

from __future__ import annotations

import json
import logging
from typing import Any

_SECRET_MARKERS = ("password", "secret", "token", "credential")
REDACTED = "***"


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: REDACTED if any(marker in key.lower() for marker in _SECRET_MARKERS) else value
        for key, value in fields.items()
    }


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON. Secret-looking fields are masked.
    """

    payload = {"event": event, **_redact(fields)}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
