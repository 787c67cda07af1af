"""Logging helpers used by the servers and CLIs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "app.log"


def setup_logging(log_dir: Union[str, Path], level: int = logging.INFO) -> Path:
    """Configure console and file logging on the root logger.

    Calling this more than once for the same directory does not add
    duplicate handlers.  Returns the path of the log file.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = (log_path / LOG_FILE_NAME).resolve()

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(DEFAULT_FORMAT)

    has_console = any(
        type(handler) is logging.StreamHandler for handler in root.handlers
    )
    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    has_file = any(
        isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file
        for handler in root.handlers
    )
    if not has_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger(__name__).debug("Logging configured (file=%s)", log_file)
    return log_file
