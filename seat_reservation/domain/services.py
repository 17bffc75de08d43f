from dataclasses import dataclass
from datetime import date, datetime
from typing import Sequence

from ..models import Reservation, ReservationStatus
from ..utils.time import hour_instant
from .errors import (
    ActiveReservationExistsError,
    InvalidRangeError,
    SeatConflictError,
    SeatNotFoundError,
)

MIN_HOUR = 0
MAX_HOUR = 24


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap: [9, 12) and [12, 15) do not conflict."""
    return a_start < b_end and b_start < a_end


def validate_hour_range(start_hour: int, end_hour: int) -> None:
    if not (MIN_HOUR <= start_hour < end_hour <= MAX_HOUR):
        raise InvalidRangeError(f"invalid hour range [{start_hour}, {end_hour})")


def reservation_end(reservation: Reservation) -> datetime:
    return hour_instant(reservation.reservation_date, reservation.end_hour)


def is_active(reservation: Reservation, *, now: datetime) -> bool:
    """A confirmed reservation whose end instant has not passed yet."""
    return reservation.status == ReservationStatus.CONFIRMED and reservation_end(reservation) > now


def is_cancelable(reservation: Reservation, now: datetime) -> bool:
    return is_active(reservation, now=now)


@dataclass(frozen=True)
class SeatDaySnapshot:
    seat_id: int
    reservation_date: date
    held: Sequence[tuple[int, int]]
    user_has_active_reservation: bool
    seat_exists: bool = True


def validate_booking(snapshot: SeatDaySnapshot, *, start_hour: int, end_hour: int) -> None:
    """
    Pure validation of a booking request against the state read under the booking locks.
    Raises domain errors in the same order the guard reports them.
    """
    validate_hour_range(start_hour, end_hour)
    if snapshot.user_has_active_reservation:
        raise ActiveReservationExistsError("user already holds an active reservation")
    if not snapshot.seat_exists:
        raise SeatNotFoundError(f"seat {snapshot.seat_id} not found")
    for held_start, held_end in snapshot.held:
        if overlaps(start_hour, end_hour, held_start, held_end):
            raise SeatConflictError(
                f"seat {snapshot.seat_id} is taken on {snapshot.reservation_date.isoformat()} "
                f"from {held_start} to {held_end}"
            )


def booking_scopes(*, user_id: str, seat_id: int, reservation_date: date) -> list[str]:
    """Lock scopes serializing commits per seat and day, and per user."""
    return sorted(
        {
            f"seat:{seat_id}:{reservation_date.isoformat()}",
            f"user:{user_id}",
        }
    )
