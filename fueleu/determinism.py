"""
FuelEU Determinism Module - Controlled timestamps for reproducible records

Compliance balances, ledger entries and pools are timestamped through a
single clock that can be frozen, so that regulatory reports and tests
produce identical output for identical input.

Author: FuelEU Platform Team
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional


class DeterministicClock:
    """
    A deterministic clock that can be frozen for testing and auditing.

    Timestamps are UTC with microseconds removed.
    """

    _instance = None
    _lock = threading.Lock()
    _frozen_time: Optional[datetime] = None

    def __new__(cls):
        """Singleton pattern to ensure single clock instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
            return cls._instance

    @classmethod
    def now(cls, tz=None) -> datetime:
        """
        Get current time, either real or frozen.

        Args:
            tz: Timezone info (defaults to UTC)

        Returns:
            Current datetime
        """
        instance = cls()
        if instance._frozen_time is not None:
            if tz is not None:
                return instance._frozen_time.astimezone(tz)
            return instance._frozen_time

        return datetime.now(tz or timezone.utc).replace(microsecond=0)

    @classmethod
    def utcnow(cls) -> datetime:
        """Get current UTC time."""
        return cls.now(timezone.utc)

    @classmethod
    def freeze(cls, frozen_time: Optional[datetime] = None):
        """
        Freeze clock at specific time.

        Args:
            frozen_time: Time to freeze at (defaults to current time).
                Naive datetimes are taken as UTC.
        """
        instance = cls()
        if frozen_time is None:
            frozen_time = datetime.now(timezone.utc).replace(microsecond=0)
        elif frozen_time.tzinfo is None:
            frozen_time = frozen_time.replace(tzinfo=timezone.utc)
        instance._frozen_time = frozen_time

    @classmethod
    def unfreeze(cls):
        """Unfreeze the clock."""
        instance = cls()
        instance._frozen_time = None

    @classmethod
    def is_frozen(cls) -> bool:
        """Return True while the clock is frozen."""
        return cls()._frozen_time is not None

    @classmethod
    @contextmanager
    def frozen(cls, frozen_time: Optional[datetime] = None):
        """
        Context manager for temporarily freezing time.

        Usage:
            with DeterministicClock.frozen(datetime(2025, 1, 1)):
                # All timestamps will be 2025-01-01
                pass
        """
        cls.freeze(frozen_time)
        try:
            yield
        finally:
            cls.unfreeze()


def utcnow() -> datetime:
    """Return the current UTC time from the deterministic clock."""
    return DeterministicClock.utcnow()


__all__ = ["DeterministicClock", "utcnow"]
