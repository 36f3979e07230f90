# backend/witar/core/logging.py
from __future__ import annotations

import logging
import sys

from witar.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Single stream handler on the root logger. Safe to call more than once
    (create_application() runs again in tests).
    """
    lvl = (level or settings.LOG_LEVEL or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(lvl)

    for h in root.handlers:
        if getattr(h, "_witar_handler", False):
            h.setLevel(lvl)
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(lvl)
    handler._witar_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo stays off unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
