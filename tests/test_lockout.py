"""
Tests for failed PIN attempt lockout decisions.

Covers security/lockout.py:
  - below the attempt limit nothing is locked
  - at the limit the lock holds for PIN_LOCKOUT_MINUTES
  - naive timestamps (as SQLite returns them) are treated as UTC
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from walletkeeper.app.core.config import settings
from walletkeeper.app.security.lockout import is_locked, lockout_remaining_minutes

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
LIMIT = settings.MAX_FAILED_PIN_ATTEMPTS


class TestIsLocked:

    def test_below_limit(self):
        assert not is_locked(LIMIT - 1, NOW, now=NOW)

    def test_at_limit_recent_failure(self):
        assert is_locked(LIMIT, NOW - timedelta(minutes=1), now=NOW)

    def test_lock_expires(self):
        expired = NOW - timedelta(minutes=settings.PIN_LOCKOUT_MINUTES + 1)
        assert not is_locked(LIMIT, expired, now=NOW)

    def test_no_failure_timestamp(self):
        assert not is_locked(LIMIT, None, now=NOW)

    def test_naive_timestamp_treated_as_utc(self):
        naive = (NOW - timedelta(minutes=1)).replace(tzinfo=None)
        assert is_locked(LIMIT, naive, now=NOW)


class TestRemainingMinutes:

    def test_counts_down(self):
        remaining = lockout_remaining_minutes(NOW - timedelta(minutes=5), now=NOW)
        assert remaining == settings.PIN_LOCKOUT_MINUTES - 5

    def test_never_negative(self):
        long_ago = NOW - timedelta(days=1)
        assert lockout_remaining_minutes(long_ago, now=NOW) == 0

    def test_none(self):
        assert lockout_remaining_minutes(None, now=NOW) == 0
