"""Logging setup utilities for userfinder.

Configures logging for the entire application based on the logging
configuration settings.
"""

from __future__ import annotations

import logging
import sys

from userfinder.config.settings import LoggingConfig

_HANDLER_MARK = "_userfinder_handler"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure logging for the userfinder application.

    Sets up the 'userfinder' logger with the specified level, format, and
    optional file handler. Calling it again replaces the handlers installed
    by the previous call instead of stacking new ones.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("userfinder")
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    handlers: list[logging.Handler] = [console_handler]

    # File handler (optional)
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        root_logger.addHandler(handler)

    root_logger.info("Logging initialized at %s level", config.level)
