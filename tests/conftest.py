from datetime import datetime, timedelta

import pytest
from seat_reservation.infrastructure.memory import InMemoryReservationStore
from seat_reservation.models import Seat
from seat_reservation.usecases.availability import AvailabilityResolver
from seat_reservation.usecases.reservations import ReservationGuard, ReservationLedger


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def _seat(seat_id: int) -> Seat:
    return Seat(id=seat_id, type_id=1, capacity=1, location=f"A-{seat_id}", notes=None)


@pytest.fixture
def clock() -> FakeClock:
    # The day before the scenarios' 2024-01-01 bookings.
    return FakeClock(datetime(2023, 12, 31, 12, 0))


@pytest.fixture
def store() -> InMemoryReservationStore:
    return InMemoryReservationStore(seats=[_seat(i) for i in range(1, 11)])


@pytest.fixture
def ledger(store: InMemoryReservationStore, clock: FakeClock) -> ReservationLedger:
    return ReservationLedger(store, clock=clock)


@pytest.fixture
def resolver(store: InMemoryReservationStore) -> AvailabilityResolver:
    return AvailabilityResolver(store)


@pytest.fixture
def guard(ledger: ReservationLedger, resolver: AvailabilityResolver) -> ReservationGuard:
    return ReservationGuard(ledger, resolver)
