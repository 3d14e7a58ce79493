"""
utils/logging.py — structlog setup for processes embedding sigma_core.

sigma_core modules log through ``structlog.get_logger(__name__)`` and never
configure anything themselves. The host calls configure_logging() once at
startup; output is JSON or console depending on settings.log_format.

Email addresses (waitlist identities, auth users) are masked before
rendering, keeping the first character and the domain: ``j***@example.com``.

Usage:
    from sigma_core.utils.logging import configure_logging

    configure_logging()                        # from settings
    configure_logging(log_level="DEBUG", log_format="json")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from sigma_core.config import settings

REDACTED_FIELDS = ("identity", "email")


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep:
        return value
    return f"{local[:1]}***@{domain}"


def redact_identities(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor: mask email-valued context fields."""
    for field in REDACTED_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = mask_email(value)
    return event_dict


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog and stdlib logging. Safe to call more than once.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_identities,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
