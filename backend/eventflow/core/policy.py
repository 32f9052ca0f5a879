"""
Single allow/deny policy shared by both coordinators and the read endpoints.
"""

from enum import Enum
from typing import Optional

from eventflow.core.security import Principal, Role


class Action(str, Enum):
    RESERVE = "reserve"
    CANCEL = "cancel"
    VIEW_BOOKINGS = "view_bookings"


# Organizers manage events; only attendees and admins hold bookings.
BOOKING_ROLES = frozenset({Role.USER, Role.ADMIN})


def is_allowed(action: Action, requester: Principal, resource_owner_id: Optional[int]) -> bool:
    if action == Action.RESERVE and requester.role not in BOOKING_ROLES:
        return False
    if requester.is_admin:
        return True
    return resource_owner_id is not None and requester.user_id == resource_owner_id
