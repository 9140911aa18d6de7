"""Datetime utilities for consistent timezone handling across the application."""

import time
from datetime import datetime, timezone


def utc_now_naive() -> datetime:
    """Get current UTC time as naive datetime for database operations.

    Note:
        Used by SQLAlchemy models whose columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_now() -> int:
    """Current time in whole epoch seconds, the unit of all subscription timestamps."""
    return int(time.time())
