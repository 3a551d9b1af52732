# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Structured logging for the WSO2 reconciler.

structlog renders through stdlib logging to stdout, which Lambda ships to
CloudWatch. Every line of one invocation carries the request id bound by
the handler, so a whole reconciliation can be followed with one filter.

Credentials flow through this process (Vault secret, DCR client secret,
bearer token), hence the masking processor.
"""

import logging
import re
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor

from .config import Settings, get_settings

REDACTED = "[REDACTED]"

# "Bearer eyJ..." / "Basic YWRt..." inside free-text values such as error bodies
_CREDENTIAL_IN_TEXT = re.compile(r"\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE)

# Third-party loggers kept quiet; HTTP traffic is logged by the client's event hooks
_NOISY_LOGGERS = ("httpcore", "httpx", "hvac", "urllib3", "asyncio")


class SensitiveDataMasker:
    """Redact values of sensitive keys, at any depth, and credentials embedded in strings."""

    def __init__(self, patterns: list[str]):
        self.key_patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        return {
            key: value if key == "event" else self._mask(key, value)
            for key, value in event_dict.items()
        }

    def _is_sensitive(self, key: Any) -> bool:
        return isinstance(key, str) and any(p.search(key) for p in self.key_patterns)

    def _mask(self, key: Any, value: Any) -> Any:
        if self._is_sensitive(key):
            return REDACTED
        if isinstance(value, dict):
            return {k: self._mask(k, v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._mask(None, v) for v in value]
        if isinstance(value, str):
            return _CREDENTIAL_IN_TEXT.sub(lambda m: f"{m.group(1)} {REDACTED}", value)
        return value


def _add_component(settings: Settings) -> Processor:
    def add_component(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("component", settings.app_name)
        event_dict.setdefault("version", settings.app_version)
        return event_dict

    return add_component


def _processors(settings: Settings, log_format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _add_component(settings),
    ]
    if settings.log_masking_enabled:
        processors.append(SensitiveDataMasker(settings.log_masking_patterns_list))

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(
    log_level: str | None = None,
    log_format: Literal["json", "text"] | None = None,
) -> None:
    """Configure structlog and the root logger.

    Safe to call on every Lambda invocation: handlers are replaced, not added.

    Args:
        log_level: Overrides settings.log_level
        log_format: Overrides settings.log_format ("json" or "text")
    """
    settings = get_settings()
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_processors(settings, log_format or settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind values to every log line of the current invocation."""
    structlog.contextvars.bind_contextvars(**{k: v for k, v in kwargs.items() if v is not None})


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
