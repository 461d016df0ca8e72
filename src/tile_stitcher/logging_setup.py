from __future__ import annotations

import logging
import os
import sys
from typing import Optional

CONSOLE_FORMAT = "%(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = True, level: Optional[str] = None) -> None:
    """
    Configure the package logger once.
    Level precedence:
      - explicit `level` arg
      - env LOG_LEVEL (e.g. DEBUG/INFO/WARNING)
      - INFO when verbose, WARNING otherwise
    """
    logger = logging.getLogger("tile_stitcher")
    if getattr(logger, "_tile_stitcher_configured", False):
        logger.setLevel(_resolve_level(verbose, level))
        return

    lvl = _resolve_level(verbose, level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT if lvl <= logging.DEBUG else CONSOLE_FORMAT))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(lvl)
    logger._tile_stitcher_configured = True  # type: ignore[attr-defined]


def _resolve_level(verbose: bool, level: Optional[str]) -> int:
    default = "INFO" if verbose else "WARNING"
    lvl_name = (level or os.environ.get("LOG_LEVEL") or default).upper()
    lvl = logging.getLevelName(lvl_name)
    return lvl if isinstance(lvl, int) else logging.INFO
