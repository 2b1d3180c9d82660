"""
ToolBridge Logging Configuration

Rich console logging with debug mode support and credential masking.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional, Union

from rich.logging import RichHandler

from .ui.theme import err_console


# Check for debug mode
DEBUG_MODE = os.environ.get("TOOLBRIDGE_DEBUG", "").lower() in ("1", "true", "yes")

_SECRET_PATTERNS = (
    re.compile(
        r"""(['"]?(?:client_secret|access_token|refresh_token)['"]?\s*[:=]\s*['"]?)([^'"&,\s}]+)"""
    ),
    re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)"),
)


def mask_secrets(text: str) -> str:
    """Replace secret values and bearer credentials with asterisks."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1****", text)
    return text


class SecretMaskingFormatter(logging.Formatter):
    """Formatter that masks secrets in log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return mask_secrets(message)


def setup_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Path] = None,
    quiet: bool = False,
) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (default: DEBUG if TOOLBRIDGE_DEBUG, else INFO)
        log_file: Optional path to log file
        quiet: If True, suppress console output

    Returns:
        Configured logger
    """
    if DEBUG_MODE:
        level = logging.DEBUG
    elif level is None:
        level = logging.INFO
    elif isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("toolbridge")
    logger.setLevel(level)
    logger.handlers.clear()

    if not quiet:
        console_handler = RichHandler(
            console=err_console,
            show_path=DEBUG_MODE,
            show_time=DEBUG_MODE,
            markup=False,
            rich_tracebacks=DEBUG_MODE,
        )
        console_handler.setLevel(level)
        console_handler.setFormatter(SecretMaskingFormatter("%(message)s"))
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
        file_handler.setFormatter(SecretMaskingFormatter(file_format))
        logger.addHandler(file_handler)

    return logger
