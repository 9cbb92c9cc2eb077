from __future__ import annotations

import logging
import os
from logging import Logger
from typing import Optional


def _level_from_env(default: int) -> int:
    raw = (os.getenv("TUNEBRIDGE_LOG_LEVEL") or "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_logger(name: str = "tunebridge", logfile: Optional[str] = None, level: int = logging.INFO) -> Logger:
    """Return the shared logger, attaching handlers only on first use."""
    level = _level_from_env(level)
    logfile = logfile or os.getenv("TUNEBRIDGE_LOG_FILE") or None
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(ch)
        if logfile:
            fh = logging.FileHandler(logfile, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
            logger.addHandler(fh)
    return logger
