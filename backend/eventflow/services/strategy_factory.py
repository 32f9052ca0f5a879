"""
Lock strategy factory.
Configures which per-event locking strategy the coordinators use.
"""

from typing import Optional

from eventflow.core.config import Settings, get_settings
from eventflow.services.interfaces.event_lock import EventLockStrategy
from eventflow.services.locking import OptimisticLockStrategy, RowLockStrategy


def get_lock_strategy(name: Optional[str] = None, settings: Optional[Settings] = None) -> EventLockStrategy:
    """
    Build the configured lock strategy.

    - row: pessimistic SELECT ... FOR UPDATE (default, predictable under contention)
    - optimistic: version compare-and-swap with retry (no blocking, retries under contention)

    Selected by the LOCK_STRATEGY env var unless `name` is given.
    """
    settings = settings or get_settings()
    name = (name or settings.LOCK_STRATEGY).lower()

    if name == "row":
        return RowLockStrategy(lock_timeout_ms=settings.LOCK_TIMEOUT_MS)
    if name == "optimistic":
        return OptimisticLockStrategy(max_attempts=settings.OPTIMISTIC_MAX_RETRIES)
    raise ValueError(f"Unknown LOCK_STRATEGY {name!r}; expected 'row' or 'optimistic'")
