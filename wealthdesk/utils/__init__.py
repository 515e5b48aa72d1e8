# wealthdesk/utils/__init__.py
"""
Cross-cutting utilities.

- logging: Logging setup with correlation ID support
- context: Request context (correlation IDs)

Usage:
    from wealthdesk.utils import setup_logging, get_logger
    from wealthdesk.utils import get_correlation_id, set_correlation_id
"""

from wealthdesk.utils.context import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from wealthdesk.utils.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
]
