"""Process-wide logging for the reservation services."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from labops.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PACKAGE_LOGGER = "labops"

_configured = False


def _resolve_level(level: Optional[str]) -> int:
    name = (level or get_settings().log_level or "INFO").strip().upper()
    resolved = logging.getLevelName(name)
    # getLevelName returns a "Level X" string for unknown names
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once; later calls only adjust the package level."""
    global _configured
    resolved_level = _resolve_level(level)
    if not _configured:
        logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
        _configured = True
    logging.getLogger(PACKAGE_LOGGER).setLevel(resolved_level)


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
