"""Logging setup shared by all components"""

import logging
from datetime import datetime
from typing import Optional, Union

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "azure_sku_migrator"
FILE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def _configure_root(level: int) -> logging.Logger:
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not _configured:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
        _configured = True
    root.setLevel(level)
    return root


def default_log_file() -> str:
    return f'azure_sku_migration_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'


def setup_logger(
    name: str,
    level: Optional[Union[str, int]] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """Return a named logger under the package root.

    Passing ``level`` reconfigures the root level; passing ``log_file`` adds a
    file handler to the root.
    """
    if level is not None:
        numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
        if not isinstance(numeric, int):
            numeric = logging.INFO
        root = _configure_root(numeric)
    else:
        root = _configure_root(logging.getLogger(ROOT_LOGGER_NAME).level or logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root.addHandler(file_handler)

    if name == ROOT_LOGGER_NAME:
        return root
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
