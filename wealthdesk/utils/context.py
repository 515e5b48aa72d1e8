# wealthdesk/utils/context.py
"""
Request context storage for correlation IDs.

Uses contextvars so the value follows a request through async/await calls
and worker threads started with the request's context.

Usage:
    from wealthdesk.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")   # middleware
    get_correlation_id()            # anywhere else -> "abc-123"
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Correlation ID of the current request, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)
