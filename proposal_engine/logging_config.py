# proposal_engine/logging_config.py
from __future__ import annotations
import logging

from proposal_engine.config import get_settings

_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger once for the whole service.
    Module loggers are plain named loggers (logging.getLogger("pricing_engine"), ...)
    and inherit this handler.
    """
    lvl = (level or get_settings().log_level or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_proposal_engine", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._proposal_engine = True
        root.addHandler(handler)
    root.setLevel(lvl)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
