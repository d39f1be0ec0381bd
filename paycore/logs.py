"""
Structured logging setup.

    from paycore.logs import configure_logging
    configure_logging(get_settings())

Modules log through structlog.get_logger(__name__) with key/value events.
"""

from __future__ import annotations

import logging

import structlog

from paycore.config import PaymentSettings


def configure_logging(settings: PaymentSettings) -> None:
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    renderer: structlog.typing.Processor
    if settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def mask_key(key: str | None) -> str:
    """
    Mask a gateway payment key for logs.

        mask_key("5zJ4xY7m0kODnyRpQWGrN2xqGlNvLrKwv1M9ENjbeoPaZdL6") -> "5zJ4xY7m0k***ZdL6"
    """
    if key is None or len(key) < 15:
        return "***"
    return f"{key[:10]}***{key[-4:]}"


__all__ = ("configure_logging", "mask_key")
