"""Logging setup helper for applications and scripts built on inferlib.

Library modules only create module loggers; installing handlers is left to
the application, which can call :func:`configure_logging` once at startup.
"""

import logging
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(
    level: Union[int, str] = "INFO",
    fmt: str = DEFAULT_FORMAT,
    logger_name: Optional[str] = "inferlib",
) -> logging.Logger:
    """Attach a stream handler to the inferlib logger hierarchy.

    Calling it again only updates the level and format, it never stacks
    a second handler.

    Args:
        level: Log level name or number
        fmt: Log record format
        logger_name: Logger to configure (None for the root logger)

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level_name = level.upper()
        if level_name not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {level}")
        level = getattr(logging, level_name)

    target = logging.getLogger(logger_name)
    target.setLevel(level)

    handler = next(
        (h for h in target.handlers if getattr(h, "_inferlib_handler", False)),
        None
    )
    if handler is None:
        handler = logging.StreamHandler()
        handler._inferlib_handler = True
        target.addHandler(handler)
    handler.setFormatter(logging.Formatter(fmt))

    return target
