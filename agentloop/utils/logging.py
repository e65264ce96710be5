"""
Structured logging for agentloop.

All modules obtain their logger through get_logger(__name__) and log an event
name followed by keyword context:

    logger = get_logger(__name__)
    logger.info("loop_step_started", step=3, phase="tool_use")
"""

import logging
import sys
from typing import Any

import structlog

# Keys whose values never reach the log output
SENSITIVE_KEYS = ("api_key", "password", "secret", "authorization", "access_token")

# Token accounting fields contain "token" but are not secrets
NON_SENSITIVE_KEYS = {
    "tokens",
    "input_tokens",
    "output_tokens",
    "total_tokens",
    "prompt_tokens",
    "completion_tokens",
    "cache_tokens",
}

REDACTED = "***REDACTED***"

_configured = False


def filter_sensitive_data(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    structlog processor that redacts credentials from the event dict.

    Token counters are left untouched.
    """
    for key in list(event_dict.keys()):
        lowered = key.lower()
        if lowered in NON_SENSITIVE_KEYS:
            continue
        if any(marker in lowered for marker in SENSITIVE_KEYS):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure structlog and the stdlib root handler.

    Invalid level names fall back to INFO.
    """
    global _configured

    level = getattr(logging, str(log_level).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: Any
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            filter_sensitive_data,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to the given module name."""
    if not _configured:
        from agentloop.config.settings import settings

        configure_logging(settings.log_level, json_format=settings.log_json)
    return structlog.get_logger(name)


__all__ = ["configure_logging", "filter_sensitive_data", "get_logger"]
