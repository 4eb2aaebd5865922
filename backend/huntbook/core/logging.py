"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.

Request ids and PayPal transmission ids bound by the middleware flow into
every log line via contextvars, so a redelivered webhook can be followed from
intake through replay. Credentials and personal details never reach the output.
"""

import logging
import sys
import structlog
from structlog.typing import EventDict, WrappedLogger
from huntbook.core.config import get_settings

# Keys masked wherever they appear in a log event, nested dicts included
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "client_secret",
        "transmission_sig",
        "paypal-transmission-sig",
        "password",
        "tax_id",
        "birth_date",
        "address",
    }
)
MASK = "***"


def _masked(value):
    if isinstance(value, dict):
        return {
            key: MASK if str(key).lower() in SENSITIVE_KEYS else _masked(item)
            for key, item in value.items()
        }
    return value


def mask_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = MASK
        else:
            event_dict[key] = _masked(event_dict[key])
    return event_dict


def add_booking_strategy(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag lines with the configured booking strategy."""
    event_dict.setdefault("strategy", get_settings().BOOKING_STRATEGY)
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    # Shared by structlog loggers and foreign stdlib ones (uvicorn, httpx)
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_booking_strategy,
        mask_sensitive,
    ]

    if settings.ENVIRONMENT == "production":
        # Webhook failures are investigated from these lines, keep tracebacks
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
