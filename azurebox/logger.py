# File: azurebox/logger.py
import logging
import os
from logging.handlers import RotatingFileHandler

try:
    import colorama
    colorama.init(autoreset=True)
except ImportError:
    pass

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_FILE = os.path.join(os.path.dirname(__file__), "..", "logs", "azurebox.log")

_COLORS = {
    logging.DEBUG: "\x1b[34m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[35m",
}


class ColoredFormatter(logging.Formatter):
    """Färbt die ganze Zeile nach Level ein; unbekannte Level bleiben farblos."""

    def format(self, record):
        line = super().format(record)
        color = _COLORS.get(record.levelno)
        return f"{color}{line}\x1b[0m" if color else line


def _setup(log: logging.Logger) -> logging.Logger:
    log.setLevel(logging.INFO)

    console = logging.StreamHandler()
    console.setFormatter(ColoredFormatter(LOG_FORMAT))
    log.addHandler(console)

    # Rotierende Datei ohne Farben, erst beim ersten Eintrag geöffnet
    os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
    rotating = RotatingFileHandler(LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5,
                                   encoding="utf-8", delay=True)
    rotating.setFormatter(logging.Formatter(LOG_FORMAT))
    log.addHandler(rotating)
    return log


logger = _setup(logging.getLogger("azurebox"))


def get_logger(name: str) -> logging.Logger:
    """Logger below ``azurebox``; module names of this package are kept as they are."""
    if name == logger.name or name.startswith(logger.name + "."):
        return logging.getLogger(name)
    return logger.getChild(name)
