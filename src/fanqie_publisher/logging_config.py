from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import LoggingConfig


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _level(name: Optional[str], default: int) -> int:
    value = logging.getLevelName((name or "").strip().upper())
    return value if isinstance(value, int) else default


def configure_logging(settings: Optional[LoggingConfig] = None) -> None:
    """
    Send records to stderr, and to `settings.file_path` when one is set.

    The CLI calls this twice: first from the environment so config errors are visible, then again once
    the config file is loaded. `force=True` makes the second call replace the first call's handlers.
    Loggers named in `settings.quiet_loggers` are held at `settings.quiet_level`; an unknown level name
    falls back to INFO (root) or WARNING (quiet loggers).
    """
    settings = settings or LoggingConfig(file_path="")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.file_path:
        path = Path(settings.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(level=_level(settings.level, logging.INFO), format=LOG_FORMAT, handlers=handlers, force=True)

    quiet = _level(settings.quiet_level, logging.WARNING)
    for name in settings.quiet_loggers:
        logging.getLogger(name).setLevel(quiet)
