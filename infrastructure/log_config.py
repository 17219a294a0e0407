"""Logging setup"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install one stdout handler on the root logger."""
    root = logging.getLogger()
    # Only configure once (reloads and test clients import main repeatedly)
    if not any(getattr(h, "_hotel_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._hotel_handler = True
        root.addHandler(handler)
    root.setLevel(level.upper())
