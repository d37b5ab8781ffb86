# /ledgerbot/utils/logging.py

import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

from ledgerbot.config.settings import settings

# Structured logging (JSON outside development). Every line written while a
# user's turn is being processed carries that turn's user_key and event kind,
# whether it came from `logging.getLogger` or `structlog.get_logger`.

USER_KEY_FIELDS = ("user_key",)
VISIBLE_KEY_CHARS = 4
NOISY_LOGGERS = ("uvicorn.access", "httpx", "apscheduler")


def mask_user_key(user_key: str) -> str:
    """Keeps the last few characters of a user key (usually a phone number)."""
    if len(user_key) <= VISIBLE_KEY_CHARS:
        return user_key
    return "***" + user_key[-VISIBLE_KEY_CHARS:]


def redact_user_keys(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    if settings.environment == "development":
        return event_dict
    for field in USER_KEY_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = mask_user_key(value)
    return event_dict


@contextmanager
def user_log_context(user_key: str, kind: str) -> Iterator[None]:
    """Binds the turn being processed to every log line emitted inside the block."""
    with bound_contextvars(user_key=user_key, event_kind=kind):
        yield


def setup_logging(level: int = logging.INFO):
    shared_processors = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_user_keys,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.environment == "development":
        final_processor = structlog.dev.ConsoleRenderer()
    else:
        final_processor = structlog.processors.JSONRenderer(ensure_ascii=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=final_processor,
        foreign_pre_chain=shared_processors,
    ))
    handler.set_name("ledgerbot")

    root_logger = logging.getLogger()
    # The lifespan runs once per TestClient
    for existing in list(root_logger.handlers):
        if existing.get_name() == "ledgerbot":
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
