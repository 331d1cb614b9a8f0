from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from .config import ChatRuntimeConfig

# Parent of telnetchat.service, telnetchat.session, telnetchat.router and
# telnetchat.rooms.
PACKAGE_LOGGER = "telnetchat"


def resolve_level(name: str | None) -> int:
    """Map a level name such as ``"info"`` or ``"DEBUG"`` to a logging level.

    An empty name means INFO. Unknown names raise ValueError.
    """
    text = (name or "").strip().upper()
    if not text:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(text)
    if level is None:
        raise ValueError(f"unknown log level {name!r}")
    return level


def _build_handlers(cfg: ChatRuntimeConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if cfg.log_file:
        path = Path(os.path.expanduser(cfg.log_file))
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    return handlers


def configure_logging(cfg: ChatRuntimeConfig) -> logging.Logger:
    """Attach console/file handlers to the ``telnetchat`` logger.

    Handlers from an earlier call are closed and replaced. Records stop at
    the package logger, so the host's root logger setup is left alone.
    """
    level = resolve_level(cfg.log_level)

    formatter = logging.Formatter(fmt=cfg.log_format, datefmt=cfg.log_datefmt or None)
    handlers = _build_handlers(cfg)
    for h in handlers:
        h.setFormatter(formatter)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for h in handlers:
        logger.addHandler(h)

    logger.setLevel(level)
    logger.propagate = False
    return logger
