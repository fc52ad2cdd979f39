"""Sentry error reporting."""

import os
from typing import Any, Dict, Optional

import sentry_sdk

from .config import evaluate_boolean
from .exceptions import ConfigurationError, MalformedSpecError
from .logging_config import logger

# User input mistakes; not worth tracking
USER_ERRORS = (ConfigurationError, MalformedSpecError)


def before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Filter events before sending to Sentry.
    Don't send user input errors - these are expected.
    """
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if isinstance(exc_value, USER_ERRORS):
            return None
    return event


def telemetry_enabled() -> bool:
    return evaluate_boolean(os.getenv("TELEMETRY", "true"))


def initialize_sentry(dsn: Optional[str] = None) -> bool:
    """
    Initialize Sentry for error tracking.

    Sentry is only enabled when a DSN is given (or SENTRY_DSN is set) and
    TELEMETRY is not false.

    Returns:
        True if Sentry was initialized
    """
    dsn = dsn or os.getenv("SENTRY_DSN")
    if not dsn or not telemetry_enabled():
        logger.debug("Sentry telemetry disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        send_default_pii=False,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0")),
        before_send=before_send,
    )
    return True
