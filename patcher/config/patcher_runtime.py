"""Utilities for CLI entry points.

This module centralizes shared runtime helpers used by `main.py`
(logging configuration).
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def configure_logging(*, debug: bool, verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure Loguru for the whole process.

    Politique:
    - Sans flag: aucun handler console -> pas de logs.
    - --verbose: INFO.
    - --debug: DEBUG (+ backtrace/diagnose).
    - --log-file: fichier rotatif, toujours au moins INFO.
    """
    logger.remove()

    level = "DEBUG" if debug else "INFO"

    if debug or verbose:
        logger.add(
            sys.stderr,
            level=level,
            backtrace=debug,
            diagnose=debug,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> " "<level>{level: <8}</level> " "<level>{message}</level>"
            ),
        )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            level=level,
            rotation="10 MB",
            retention="7 days",
            encoding="utf-8",
        )
        logger.debug(f"[configure_logging] Fichier de log: {log_file}")
