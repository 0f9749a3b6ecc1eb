"""
Environment-driven settings.

    QERES_DEBUG       any non-empty value turns on debug logging
    QERES_LOG_LEVEL   logging level name (default WARNING)
    QERES_FORMAT      default output format of the command line runner
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

FORMATS = ('json', 'yaml', 'toml', 'xml')

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass
class QeresConfig:
    log_level: int = logging.WARNING
    output_format: str = 'json'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'QeresConfig':
        env = os.environ if environ is None else environ
        level = logging.WARNING
        level_name = (env.get("QERES_LOG_LEVEL") or "").strip().upper()
        if level_name:
            resolved = logging.getLevelName(level_name)
            if not isinstance(resolved, int):
                raise ValueError(f"Unknown QERES_LOG_LEVEL: {level_name!r}")
            level = resolved
        if env.get("QERES_DEBUG"):
            level = logging.DEBUG
        fmt = (env.get("QERES_FORMAT") or 'json').strip().lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unknown QERES_FORMAT: {fmt!r} (expected one of {', '.join(FORMATS)})")
        return cls(log_level=level, output_format=fmt)


def configure_logging(level: int = logging.WARNING, stream=None) -> logging.Logger:
    """Attach a single stderr handler to the `qeres` logger."""
    logger = logging.getLogger("qeres")
    for handler in list(logger.handlers):
        if getattr(handler, "_qeres_handler", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._qeres_handler = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
