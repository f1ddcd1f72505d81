"""
Structured logging setup for the facilitator
"""

import logging

import structlog


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structlog with JSON output for production or console output for development"""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if fmt == "json":
        # ConsoleRenderer formats tracebacks itself
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        cache_logger_on_first_use=False,
    )
