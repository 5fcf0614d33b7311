# logging_config.py
"""Logging configuration."""

from __future__ import annotations

import logging
from typing import Optional

from settings import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the whole process."""
    desired = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, desired, logging.INFO), format=LOG_FORMAT)
    # botocore is chatty at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
