"""
Event inventory endpoints. Read-only: the catalog owns everything else about events.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.db.session import get_db
from eventflow.schemas.error import ErrorResponse
from eventflow.schemas.event import EventAvailabilityResponse
from eventflow.services.event_service import get_event_availability
from eventflow.services.cache_service import get_cached_availability, set_cached_availability
from eventflow.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get(
    "/{event_id}/availability",
    response_model=EventAvailabilityResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_event_availability_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Seats left for an event, for display.
    Cached in Redis briefly and invalidated whenever a booking changes it.
    """
    cached = await get_cached_availability(event_id)
    if cached:
        logger.debug("availability_cache_hit", event_id=event_id)
        cached["cached"] = True
        return EventAvailabilityResponse(**cached)

    availability = await get_event_availability(db, event_id)
    await set_cached_availability(event_id, availability)
    return EventAvailabilityResponse(**availability, cached=False)
