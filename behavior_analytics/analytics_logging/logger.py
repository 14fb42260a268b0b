"""
structlog setup for the analytics engine.

Every event carries event_type, level and an ISO-8601 UTC timestamp. Operations
bind the account they act on with bind_account(), so events logged anywhere
below (store, flag classifier, scorer) carry account_id without passing it
around. Principal-valued keys are shortened by a processor; call sites pass
full principals.

LOG_LEVEL (default INFO) and LOG_FORMAT (json | console, default json) are read
when configure_logging() runs, which happens once at import.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog

PRINCIPAL_KEYS = ("account_id", "recipient", "caller")
PRINCIPAL_PREFIX = 16


def short_account(account: str) -> str:
    """Truncate long principals for log lines."""
    if len(account) > PRINCIPAL_PREFIX:
        return account[:PRINCIPAL_PREFIX] + "..."
    return account


def shorten_principals(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in PRINCIPAL_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = short_account(value)
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Arguments override LOG_LEVEL / LOG_FORMAT."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        shorten_principals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors += [structlog.processors.EventRenamer("event_type"), structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> Any:
    """
    Structured logger for a module:
        logger = get_logger(__name__)
        logger.info("transfer_recorded", transfer_id=7, risk_score=35)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_account(account: str) -> AbstractContextManager[Any]:
    """
    Context manager binding account_id to every event logged inside it, in this
    thread or task only.
    """
    return structlog.contextvars.bound_contextvars(account_id=account)
