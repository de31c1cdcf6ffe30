"""
Logging utilities.

WHAT: Root logging setup plus negotiation-scoped log context
WHY: Negotiation events from REST and sockets interleave; every line needs
     to say which negotiation and which user it is about
HOW: Console + rotating file handlers on the root logger; a LoggerAdapter
     that prefixes records with "[negotiation=... user=...]"
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..core.config import settings

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers kept at WARNING unless DEBUG is on
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "websockets")


def setup_logging():
    """
    Configure application logging.

    WHAT: Root logger with console (INFO) and rotating file (DEBUG) handlers
    WHY: Console for operators, file for after-the-fact negotiation forensics
    HOW: Rebuild root handlers from settings; safe to call more than once
    """
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    if not settings.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file})")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class NegotiationLogAdapter(logging.LoggerAdapter):
    """Prefix messages with the negotiation and acting user."""

    def process(self, msg, kwargs):
        context = " ".join(f"{key}={value}" for key, value in self.extra.items() if value is not None)
        return (f"[{context}] {msg}" if context else msg), kwargs


def negotiation_logger(logger: logging.Logger, negotiation_id=None, user_id=None) -> NegotiationLogAdapter:
    """
    Bind negotiation context to a module logger.

    Usage:
        log = negotiation_logger(logger, negotiation_id, user_id)
        log.info("Offer updated")  # "[negotiation=... user=...] Offer updated"
    """
    return NegotiationLogAdapter(logger, {"negotiation": negotiation_id, "user": user_id})
