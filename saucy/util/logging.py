"""Logging setup for the saucy studio, including API-key redaction.

Every logger handed out by :func:`get_logger` carries a :class:`RedactingFilter`.
Credentials registered with :func:`register_secret` are masked in the rendered
message before any handler sees the record, so exception text that happens to
embed a key (a URL path, a provider echo) is safe to log.
"""

from __future__ import annotations

import logging
import os
from typing import Any

_LOG_LEVEL = os.getenv("SAUCY_LOG_LEVEL", "INFO").upper()

# Shorter values would mask ordinary words in log lines.
MIN_SECRET_LENGTH = 8

_secrets: set[str] = set()


def redact(secret: str | None) -> str:
    """Return a safe-to-log stand-in for a credential."""
    if not secret:
        return "<empty>"
    return f"<redacted len={len(secret)}>"


def scrub(text: str, *secrets: str | None) -> str:
    """Replace every occurrence of ``secrets`` in ``text`` with its redacted form."""
    for secret in sorted((s for s in secrets if s), key=len, reverse=True):
        text = text.replace(secret, redact(secret))
    return text


def register_secret(secret: str | None) -> None:
    """Mask ``secret`` in every saucy log line from now on."""
    if secret and len(secret) >= MIN_SECRET_LENGTH:
        _secrets.add(secret)


class RedactingFilter(logging.Filter):
    """Rewrite records whose rendered message or traceback contains a registered secret."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _secrets:
            return True
        message = record.getMessage()
        cleaned = scrub(message, *_secrets)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = _TRACEBACK_FORMATTER.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = scrub(record.exc_text, *_secrets)
        return True


_REDACTOR = RedactingFilter()
_TRACEBACK_FORMATTER = logging.Formatter()


def _configure_root_logger() -> None:
    """Idempotently configure the root logger with a consistent formatter."""
    if getattr(_configure_root_logger, "_configured", False):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(_REDACTOR)

    root = logging.getLogger()
    root.setLevel(_LOG_LEVEL)
    root.handlers = [handler]

    _configure_root_logger._configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with the redacting filter attached."""
    _configure_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(_LOG_LEVEL)
    if _REDACTOR not in logger.filters:
        logger.addFilter(_REDACTOR)
    return logger


def set_level(level: str) -> None:
    """Change the level of the root logger and every saucy logger at runtime."""
    global _LOG_LEVEL
    _LOG_LEVEL = level.upper()
    logging.getLogger().setLevel(_LOG_LEVEL)
    for name, existing in logging.root.manager.loggerDict.items():
        if name.startswith("saucy") and isinstance(existing, logging.Logger):
            existing.setLevel(_LOG_LEVEL)


def emit_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Log a structured event line with key=value pairs for downstream parsing."""
    kv_pairs = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.info("%s %s", event, kv_pairs.strip())
