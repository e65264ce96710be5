"""
Sensitive-data filtering in structured logs.
"""

import structlog

from agentloop.utils.logging import REDACTED, configure_logging, filter_sensitive_data, get_logger


def test_credentials_are_redacted():
    event = filter_sensitive_data(
        None,
        "info",
        {"event": "llm_request", "api_key": "sk-123", "Authorization": "Bearer x", "model": "gpt"},
    )

    assert event["api_key"] == REDACTED
    assert event["Authorization"] == REDACTED
    assert event["model"] == "gpt"


def test_token_counts_are_not_redacted():
    event = filter_sensitive_data(
        None,
        "info",
        {"event": "llm_response", "total_tokens": 15, "input_tokens": 10, "access_token": "t"},
    )

    assert event["total_tokens"] == 15
    assert event["input_tokens"] == 10
    assert event["access_token"] == REDACTED


def test_invalid_level_falls_back_to_info():
    configure_logging("LOUD")
    logger = get_logger("tests")

    with structlog.testing.capture_logs() as logs:
        logger.info("something_happened", step=1)

    assert logs == [{"event": "something_happened", "step": 1, "log_level": "info"}]
