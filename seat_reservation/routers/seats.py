from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query

from ..deps import get_resolver
from ..domain.errors import ReservationError
from ..schemas import SeatAvailability
from ..usecases.availability import AvailabilityResolver
from .errors import to_http_exception

router = APIRouter(prefix="/seats", tags=["seats"])


@router.get("/availability", response_model=List[SeatAvailability])
async def list_availability(
    reservation_date: date = Query(..., alias="date", description="Calendar day (YYYY-MM-DD)"),
    start_hour: int = Query(..., alias="startHour"),
    end_hour: int = Query(..., alias="endHour"),
    resolver: AvailabilityResolver = Depends(get_resolver),
) -> list[SeatAvailability]:
    try:
        rows = await resolver.list_seats(reservation_date, start_hour, end_hour)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return [SeatAvailability.from_db(seat=seat, status=occupancy) for seat, occupancy in rows]
