# walletkeeper/app/security/lockout.py
"""
Failed PIN attempt tracking.

This module handles:
- Lockout decision after too many consecutive failures
- Remaining lockout time for caller messages

Counters live on the wallet row (failed_pin_attempts, last_failed_pin_at).
"""
from datetime import datetime, timezone
from typing import Optional

from walletkeeper.app.core.config import settings


def _as_aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_locked(failed_attempts: int, last_failed_at: Optional[datetime],
              now: Optional[datetime] = None) -> bool:
    """
    Check if PIN checks are locked due to too many failed attempts.

    Args:
        failed_attempts: Number of consecutive failed attempts
        last_failed_at: Timestamp of the last failure

    Returns:
        True if locked, False otherwise
    """
    if failed_attempts < settings.MAX_FAILED_PIN_ATTEMPTS:
        return False

    if last_failed_at is None:
        return False

    now = now or datetime.now(timezone.utc)
    elapsed_minutes = (now - _as_aware(last_failed_at)).total_seconds() / 60

    return elapsed_minutes < settings.PIN_LOCKOUT_MINUTES


def lockout_remaining_minutes(last_failed_at: Optional[datetime],
                              now: Optional[datetime] = None) -> int:
    """
    Get remaining lockout time in minutes.

    Args:
        last_failed_at: Timestamp of the last failed attempt

    Returns:
        Remaining lockout minutes, or 0 if not locked
    """
    if last_failed_at is None:
        return 0

    now = now or datetime.now(timezone.utc)
    elapsed_minutes = (now - _as_aware(last_failed_at)).total_seconds() / 60
    remaining = settings.PIN_LOCKOUT_MINUTES - elapsed_minutes

    return max(0, int(remaining))
