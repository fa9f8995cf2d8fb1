"""Logging setup."""

import logging
import os
from typing import Optional


def configure_logging(run_id: Optional[str] = None, level: Optional[str] = None) -> None:
    """Configure process-wide logging; MATCHCAST_LOG_LEVEL picks the level."""
    level_name = (level or os.environ.get("MATCHCAST_LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)
    run_prefix = f"[run_id={run_id}] " if run_id else ""
    fmt = "%(asctime)s %(levelname)s " + run_prefix + "%(name)s: %(message)s"
    logging.basicConfig(level=resolved, format=fmt, force=True)
