"""
Process-wide logging setup.

CONVOQ_LOG_LEVEL is read on every get_logger call, so a host that changes it
at runtime picks up the new level on the next module logger it asks for.
httpx logs one INFO line per request; it is held at WARNING unless convoq
itself runs at DEBUG.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_CHATTY_LIBRARIES: Final[tuple[str, ...]] = ("httpx", "httpcore")


def _resolve_level() -> int:
    level_name = os.getenv("CONVOQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _apply_root_level(level: int) -> None:
    logging.getLogger().setLevel(level)
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the root stream handler is attached once per process."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logging.getLogger().addHandler(handler)
        _HANDLER_ATTACHED = True
    _apply_root_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
