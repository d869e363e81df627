"""
Logging Setup
=============
Configures structlog on top of stdlib logging for services embedding the
authentication core.

Usage:
    from otp_auth.logging_config import setup_logging

    setup_logging(service_name="otp-auth")
"""

import logging
import sys

import structlog


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> structlog.stdlib.BoundLogger:
    """
    Configure structured logging.

    Args:
        service_name: Name of the service, bound to every log line
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit JSON lines (production) instead of console output

    Returns:
        Logger bound to the service name
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    logger = structlog.get_logger(service_name)
    logger.info("Logging configured", service=service_name, level=level.upper())
    return logger
