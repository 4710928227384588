from __future__ import annotations

import logging
import sys
from typing import Optional


def setup_logging(name: str = "watchkeeper", level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        if level:
            logger.setLevel(level.upper())
        return logger
    logger.setLevel((level or "INFO").upper())
    h = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    return logger
