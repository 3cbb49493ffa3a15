"""Centralized logging configuration with environment variable support."""

import os
import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger


class LoggingConfig:
    """Centralized logging configuration."""

    # Environment variable defaults
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    LOG_CORRELATION_ID_HEADER = os.environ.get("LOG_CORRELATION_ID_HEADER", "X-Correlation-ID")
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))

    # Libraries that log every request at INFO
    NOISY_LOGGERS = (
        "httpx",
        "httpcore",
        "urllib3",
        "supabase",
        "postgrest",
        "googleapiclient.discovery",
        "googleapiclient.discovery_cache",
    )

    _configured = False

    @classmethod
    def refresh(cls) -> None:
        """Re-read the environment (after a .env file has been loaded)."""
        cls.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
        cls.LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
        cls.LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
        cls.LOG_CORRELATION_ID_HEADER = os.environ.get("LOG_CORRELATION_ID_HEADER", "X-Correlation-ID")
        cls.LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))

    @classmethod
    def setup_logging(cls, level: Optional[str] = None, force: bool = False) -> None:
        """Configure the root logger once per process.

        Serverless handlers and the dev server both call this on import, so
        repeated calls are no-ops unless ``force`` is set.
        """
        if cls._configured and not force:
            return
        if force:
            cls.refresh()

        log_level = getattr(logging, (level or cls.LOG_LEVEL).upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.handlers.clear()

        # stdout for serverless/Vercel
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)

        if cls.LOG_FORMAT == "json":
            formatter = jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"levelname": "level", "asctime": "logged_at"},
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

        for name in cls.NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        cls._configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
