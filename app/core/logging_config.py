"""Logging setup for the API process.

Call ``setup_logging()`` once at startup; modules obtain loggers with
``logging.getLogger(__name__)`` as usual.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def setup_logging(level: str | None = None, log_dir: str | None = None) -> None:
    """Attach console (and optionally rotating file) handlers to the root logger."""
    global _configured
    if _configured:
        return

    level_name = (level or settings.log_level).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    directory = log_dir if log_dir is not None else settings.log_dir
    if directory:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / "reports.log", maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True
