"""Process-wide logging setup."""

import logging
from typing import Optional

from leaveflow.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logging.getLogger().setLevel(resolved)

    # SQL echo is controlled by the engine, not by the app level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
