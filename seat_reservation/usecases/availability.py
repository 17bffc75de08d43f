from datetime import date

from ..domain.errors import SeatNotFoundError
from ..domain.repositories import ReservationStore
from ..domain.services import overlaps, validate_hour_range
from ..models import Reservation, Seat, SeatOccupancy


class AvailabilityResolver:
    """Derives seat occupancy for an hour window from the confirmed reservations of a day.

    Results are a point-in-time snapshot; the ledger re-checks at commit time.
    """

    def __init__(self, store: ReservationStore) -> None:
        self.store = store

    async def resolve(self, reservation_date: date, window_start: int, window_end: int) -> dict[int, SeatOccupancy]:
        rows = await self.list_seats(reservation_date, window_start, window_end)
        return {seat.id: occupancy for seat, occupancy in rows}

    async def list_seats(
        self,
        reservation_date: date,
        window_start: int,
        window_end: int,
    ) -> list[tuple[Seat, SeatOccupancy]]:
        validate_hour_range(window_start, window_end)
        async with self.store.read() as repos:
            seats = await repos.seats.list_all()
            held = await repos.reservations.list_confirmed_on(reservation_date)
        occupied = _occupied_seat_ids(held, window_start, window_end)
        return [
            (seat, SeatOccupancy.OCCUPIED if seat.id in occupied else SeatOccupancy.FREE)
            for seat in seats
        ]

    async def seat_status(
        self,
        seat_id: int,
        reservation_date: date,
        window_start: int,
        window_end: int,
    ) -> SeatOccupancy:
        validate_hour_range(window_start, window_end)
        async with self.store.read() as repos:
            seat = await repos.seats.get(seat_id)
            if seat is None:
                raise SeatNotFoundError(f"seat {seat_id} not found")
            held = await repos.reservations.list_confirmed_for_seat(seat_id, reservation_date)
        if seat_id in _occupied_seat_ids(held, window_start, window_end):
            return SeatOccupancy.OCCUPIED
        return SeatOccupancy.FREE


def _occupied_seat_ids(held: list[Reservation], window_start: int, window_end: int) -> set[int]:
    return {
        r.seat_id for r in held if overlaps(r.start_hour, r.end_hour, window_start, window_end)
    }
