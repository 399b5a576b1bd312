"""
Logging Setup — Console plus LOG_DIR/server.log.
"""
import logging
import os

from app.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Attach console and file handlers to the root logger (idempotent)."""
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    log_file = os.path.join(settings.LOG_DIR, "server.log")
    for handler in root.handlers:
        if getattr(handler, "_payment_bridge", False):
            return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console._payment_bridge = True
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    file_handler._payment_bridge = True
    root.addHandler(file_handler)
