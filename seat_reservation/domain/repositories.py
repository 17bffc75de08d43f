from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import AsyncContextManager, Protocol, Sequence

from ..models import Reservation, Seat


class SeatRepository(Protocol):
    async def list_all(self) -> list[Seat]: ...

    async def get(self, seat_id: int) -> Seat | None: ...


class ReservationRepository(Protocol):
    async def lock(self, scopes: Sequence[str]) -> None: ...

    async def count_active_for_user(self, user_id: str, *, now: datetime) -> int: ...

    async def list_confirmed_for_seat(self, seat_id: int, reservation_date: date) -> list[Reservation]: ...

    async def list_confirmed_on(self, reservation_date: date) -> list[Reservation]: ...

    async def create(
        self,
        *,
        user_id: str,
        seat_id: int,
        reservation_date: date,
        start_hour: int,
        end_hour: int,
        total_price: int,
        created_at: datetime,
    ) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def mark_canceled(self, reservation: Reservation, *, canceled_at: datetime) -> bool: ...

    async def list_by_user(self, user_id: str) -> list[tuple[Reservation, Seat]]: ...


@dataclass(frozen=True)
class Repositories:
    seats: SeatRepository
    reservations: ReservationRepository


class ReservationStore(Protocol):
    def read(self) -> AsyncContextManager[Repositories]: ...

    def write(self) -> AsyncContextManager[Repositories]: ...
