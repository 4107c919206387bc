"""Logging initialisation driven by an explicit configuration value.

Modules in this package log through ``logging.getLogger(__name__)`` and
never configure handlers themselves.  Applications call
``configure_logging`` once with a ``LoggingConfig``; nothing here reads or
writes process environment variables.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.logging import RichHandler

PLAIN_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Marks handlers installed by configure_logging so a second call replaces them.
_HANDLER_ATTR: str = "_persistent_sessions_handler"


@dataclass(frozen=True)
class LoggingConfig:
    """Parameters for ``configure_logging``.

    Parameters
    ----------
    level:
        Level name or number applied to ``logger_name``.
    rich:
        Use ``rich.logging.RichHandler`` instead of a plain stream handler.
    logger_name:
        Logger to configure.  Defaults to this package's logger; pass ``""``
        to configure the root logger.
    fmt:
        Format string for the plain handler.
    """

    level: str | int = "INFO"
    rich: bool = False
    logger_name: str = "persistent_sessions"
    fmt: str = PLAIN_FORMAT


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Install one handler on the configured logger and return the logger.

    Calling it again replaces the handler installed by the previous call.

    Raises
    ------
    ValueError
        If ``config.level`` is not a known level name.
    """
    level = config.level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level {config.level!r}")
        level = resolved

    handler: logging.Handler
    if config.rich:
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(config.fmt))
    setattr(handler, _HANDLER_ATTR, True)

    target = logging.getLogger(config.logger_name or None)
    for existing in list(target.handlers):
        if getattr(existing, _HANDLER_ATTR, False):
            target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(level)
    return target


__all__ = ["LoggingConfig", "PLAIN_FORMAT", "configure_logging"]
