from datetime import date, datetime

import pytest
from seat_reservation.domain.errors import (
    ActiveReservationExistsError,
    AlreadyEndedError,
    InvalidRangeError,
    SeatConflictError,
    SeatNotFoundError,
)
from seat_reservation.models import ReservationStatus, SeatOccupancy
from seat_reservation.usecases.reservations import ReservationGuard

DAY = date(2024, 1, 1)


async def _book(guard: ReservationGuard, user_id: str, seat_id: int, start: int, end: int):
    return await guard.book(
        user_id=user_id,
        seat_id=seat_id,
        reservation_date=DAY,
        start_hour=start,
        end_hour=end,
        total_price=5000,
    )


@pytest.mark.asyncio
async def test_scenarios_a_through_d(guard, ledger, resolver) -> None:
    # A: alice books seat 5 from 9 to 12
    reservation = await _book(guard, "alice", 5, 9, 12)
    assert reservation.status == ReservationStatus.CONFIRMED
    assert (await resolver.resolve(DAY, 9, 12))[5] == SeatOccupancy.OCCUPIED

    # B: alice still holds a future reservation
    with pytest.raises(ActiveReservationExistsError):
        await _book(guard, "alice", 7, 14, 16)

    # C: bob overlaps alice's slot
    with pytest.raises(SeatConflictError):
        await _book(guard, "bob", 5, 10, 11)

    # D: alice cancels, the seat frees up and bob gets it
    canceled = await ledger.cancel(reservation.id, user_id="alice")
    assert canceled.status == ReservationStatus.CANCELED
    assert (await resolver.resolve(DAY, 9, 12))[5] == SeatOccupancy.FREE
    bobs = await _book(guard, "bob", 5, 10, 11)
    assert bobs.status == ReservationStatus.CONFIRMED
    assert bobs.id != reservation.id


@pytest.mark.asyncio
async def test_scenario_e_cancel_after_end_hour(guard, ledger, clock) -> None:
    reservation = await _book(guard, "alice", 5, 9, 12)
    clock.now = datetime(2024, 1, 1, 13, 0)
    with pytest.raises(AlreadyEndedError):
        await ledger.cancel(reservation.id, user_id="alice")


@pytest.mark.asyncio
async def test_guard_rejects_invalid_range_before_touching_storage(guard) -> None:
    with pytest.raises(InvalidRangeError):
        await _book(guard, "alice", 5, 9, 25)
    with pytest.raises(InvalidRangeError):
        await _book(guard, "alice", 5, 9, 9)


@pytest.mark.asyncio
async def test_guard_rejects_unknown_seat(guard) -> None:
    with pytest.raises(SeatNotFoundError):
        await _book(guard, "alice", 404, 9, 12)


@pytest.mark.asyncio
async def test_guard_commit_path_catches_race_missed_by_precheck(guard, ledger, resolver, monkeypatch) -> None:
    await _book(guard, "alice", 5, 9, 12)

    async def stale_free(*args: object, **kwargs: object) -> SeatOccupancy:
        return SeatOccupancy.FREE

    # Simulate a pre-check that ran before alice's commit became visible.
    monkeypatch.setattr(resolver, "seat_status", stale_free)
    with pytest.raises(SeatConflictError):
        await _book(guard, "bob", 5, 10, 11)
