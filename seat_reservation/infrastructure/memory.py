"""
In-process reservation store with the same transactional contract as the SQL store.

Each `write()` block is a transaction: scope locks are `asyncio.Lock`s held until the
block exits, and inserts/status flips are staged and only applied when the block exits
without an exception. Reads yield to the event loop once per call to mimic a storage
round trip, so concurrent tasks interleave the way they would against a database.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Callable, Iterable, Sequence

from ..domain.repositories import ReservationRepository, Repositories, SeatRepository
from ..domain.services import is_active
from ..models import Reservation, ReservationStatus, Seat


class _Transaction:
    def __init__(self, store: "InMemoryReservationStore") -> None:
        self.store = store
        self.held: dict[str, asyncio.Lock] = {}
        self.pending: list[Callable[[], None]] = []

    async def acquire(self, scopes: Sequence[str]) -> None:
        for scope in sorted(set(scopes)):
            if scope in self.held:
                continue
            lock = self.store._checkout_lock(scope)
            try:
                await lock.acquire()
            except asyncio.CancelledError:
                self.store._return_lock(scope)
                raise
            self.held[scope] = lock

    def apply(self) -> None:
        for op in self.pending:
            op()
        self.pending.clear()

    def release(self) -> None:
        for scope in reversed(list(self.held)):
            self.held[scope].release()
            self.store._return_lock(scope)
        self.held.clear()


class InMemorySeatRepository(SeatRepository):
    def __init__(self, store: "InMemoryReservationStore") -> None:
        self.store = store

    async def list_all(self) -> list[Seat]:
        await asyncio.sleep(0)
        return [self.store._seats[seat_id] for seat_id in sorted(self.store._seats)]

    async def get(self, seat_id: int) -> Seat | None:
        await asyncio.sleep(0)
        return self.store._seats.get(seat_id)


class InMemoryReservationRepository(ReservationRepository):
    def __init__(self, store: "InMemoryReservationStore", tx: _Transaction | None) -> None:
        self.store = store
        self.tx = tx

    def _require_tx(self) -> _Transaction:
        if self.tx is None:
            raise RuntimeError("write operation outside of a write transaction")
        return self.tx

    async def lock(self, scopes: Sequence[str]) -> None:
        await self._require_tx().acquire(scopes)

    async def count_active_for_user(self, user_id: str, *, now: datetime) -> int:
        await asyncio.sleep(0)
        return sum(
            1 for r in self.store._reservations.values() if r.user_id == user_id and is_active(r, now=now)
        )

    async def list_confirmed_for_seat(self, seat_id: int, reservation_date: date) -> list[Reservation]:
        await asyncio.sleep(0)
        rows = [
            r
            for r in self.store._reservations.values()
            if r.seat_id == seat_id
            and r.reservation_date == reservation_date
            and r.status == ReservationStatus.CONFIRMED
        ]
        return sorted(rows, key=lambda r: r.start_hour)

    async def list_confirmed_on(self, reservation_date: date) -> list[Reservation]:
        await asyncio.sleep(0)
        return [
            r
            for r in self.store._reservations.values()
            if r.reservation_date == reservation_date and r.status == ReservationStatus.CONFIRMED
        ]

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
    ) -> Reservation:
        tx = self._require_tx()
        reservation = Reservation(
            id=next(self.store._ids),
            user_id=user_id,
            seat_id=seat_id,
            reservation_date=reservation_date,
            start_hour=start_hour,
            end_hour=end_hour,
            total_price=total_price,
            status=ReservationStatus.CONFIRMED,
            created_at=created_at,
            canceled_at=None,
        )
        tx.pending.append(lambda: self.store._reservations.__setitem__(reservation.id, reservation))
        return reservation

    async def get(self, reservation_id: int) -> Reservation | None:
        await asyncio.sleep(0)
        return self.store._reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        await self._require_tx().acquire([f"reservation:{reservation_id}"])
        return self.store._reservations.get(reservation_id)

    async def mark_canceled(self, reservation: Reservation, *, canceled_at: datetime) -> bool:
        tx = self._require_tx()
        if reservation.status != ReservationStatus.CONFIRMED:
            return False

        def flip() -> None:
            reservation.status = ReservationStatus.CANCELED
            reservation.canceled_at = canceled_at

        tx.pending.append(flip)
        return True

    async def list_by_user(self, user_id: str) -> list[tuple[Reservation, Seat]]:
        await asyncio.sleep(0)
        rows = [
            (r, self.store._seats[r.seat_id])
            for r in self.store._reservations.values()
            if r.user_id == user_id and r.seat_id in self.store._seats
        ]
        return sorted(
            rows,
            key=lambda row: (row[0].reservation_date, row[0].start_hour, row[0].id),
            reverse=True,
        )


class InMemoryReservationStore:
    def __init__(self, seats: Iterable[Seat] = ()) -> None:
        self._seats: dict[int, Seat] = {seat.id: seat for seat in seats}
        self._reservations: dict[int, Reservation] = {}
        self._ids = itertools.count(1)
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders plus waiters per scope; the lock is dropped when this reaches zero.
        self._lock_users: Counter[str] = Counter()

    def add_seat(self, seat: Seat) -> None:
        self._seats[seat.id] = seat

    def _checkout_lock(self, scope: str) -> asyncio.Lock:
        self._lock_users[scope] += 1
        lock = self._locks.get(scope)
        if lock is None:
            lock = self._locks[scope] = asyncio.Lock()
        return lock

    def _return_lock(self, scope: str) -> None:
        self._lock_users[scope] -= 1
        if self._lock_users[scope] <= 0:
            del self._lock_users[scope]
            del self._locks[scope]

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Repositories]:
        yield Repositories(
            seats=InMemorySeatRepository(self),
            reservations=InMemoryReservationRepository(self, None),
        )

    @asynccontextmanager
    async def write(self) -> AsyncIterator[Repositories]:
        tx = _Transaction(self)
        try:
            yield Repositories(
                seats=InMemorySeatRepository(self),
                reservations=InMemoryReservationRepository(self, tx),
            )
            tx.apply()
        finally:
            tx.release()
