"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .event_lock import EventLockStrategy, VersionConflict

__all__ = ['EventLockStrategy', 'VersionConflict']
