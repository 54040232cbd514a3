"""Environment-driven settings."""

import logging
import os

LOG_LEVEL_ENV = "DOCFIELDS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = logging.WARNING


def get_log_level() -> int:
    """Level named by DOCFIELDS_LOG_LEVEL, WARNING if unset or unknown."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else DEFAULT_LOG_LEVEL
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


def configure_logging() -> None:
    logging.basicConfig(
        level=get_log_level(),
        format="%(levelname)s %(name)s: %(message)s",
    )
