import logging
from dataclasses import dataclass
from datetime import date

from ..domain.errors import (
    ActiveReservationExistsError,
    AlreadyCanceledError,
    AlreadyEndedError,
    ForbiddenError,
    ReservationNotFoundError,
    SeatConflictError,
    SeatNotFoundError,
)
from ..domain.repositories import ReservationStore
from ..domain.services import (
    SeatDaySnapshot,
    booking_scopes,
    is_cancelable,
    validate_booking,
    validate_hour_range,
)
from ..models import Reservation, ReservationStatus, Seat, SeatOccupancy
from ..utils.audit_log import emit_audit_log
from ..utils.time import Clock
from .availability import AvailabilityResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveReservationSummary:
    has_active_reservation: bool
    active_count: int


class ReservationLedger:
    """
    Sole writer of reservation records.

    `commit` and `cancel` each run in one write transaction of the store. A commit
    locks the seat/day scope and the user scope before reading, so the check and the
    insert are serialized against every other commit touching either scope.

    Audit lines are written only after the transaction has committed.
    """

    def __init__(self, store: ReservationStore, *, clock: Clock) -> None:
        self.store = store
        self.clock = clock

    async def commit(
        self,
        *,
        user_id: str,
        seat_id: int,
        reservation_date: date,
        start_hour: int,
        end_hour: int,
        total_price: int,
    ) -> Reservation:
        validate_hour_range(start_hour, end_hour)
        async with self.store.write() as repos:
            # Locks come before any read so the snapshot postdates the previous holder's commit.
            await repos.reservations.lock(
                booking_scopes(user_id=user_id, seat_id=seat_id, reservation_date=reservation_date)
            )
            now = self.clock()
            active = await repos.reservations.count_active_for_user(user_id, now=now)
            seat = await repos.seats.get(seat_id)
            held = await repos.reservations.list_confirmed_for_seat(seat_id, reservation_date)
            snapshot = SeatDaySnapshot(
                seat_id=seat_id,
                reservation_date=reservation_date,
                held=[(r.start_hour, r.end_hour) for r in held],
                user_has_active_reservation=active > 0,
                seat_exists=seat is not None,
            )
            try:
                validate_booking(snapshot, start_hour=start_hour, end_hour=end_hour)
            except (ActiveReservationExistsError, SeatNotFoundError, SeatConflictError) as exc:
                logger.info("commit rejected for user=%s seat=%s: %s", user_id, seat_id, exc)
                raise

            reservation = await repos.reservations.create(
                user_id=user_id,
                seat_id=seat_id,
                reservation_date=reservation_date,
                start_hour=start_hour,
                end_hour=end_hour,
                total_price=total_price,
                created_at=now,
            )
        emit_audit_log(
            action="reservation.created",
            initiator="user",
            reservation_id=reservation.id,
            seat_id=seat_id,
            user_id=user_id,
            reservation_date=reservation_date,
            start_hour=start_hour,
            end_hour=end_hour,
            status_from=None,
            status_to=ReservationStatus.CONFIRMED,
            extra={"total_price": total_price},
        )
        return reservation

    async def cancel(self, reservation_id: int, *, user_id: str) -> Reservation:
        async with self.store.write() as repos:
            reservation = await repos.reservations.get_for_update(reservation_id)
            if reservation is None:
                raise ReservationNotFoundError(f"reservation {reservation_id} not found")
            if reservation.user_id != user_id:
                raise ForbiddenError("only the owner may cancel a reservation")
            if reservation.status == ReservationStatus.CANCELED:
                raise AlreadyCanceledError(f"reservation {reservation_id} is already canceled")
            now = self.clock()
            if not is_cancelable(reservation, now):
                raise AlreadyEndedError(f"reservation {reservation_id} has already ended")
            if not await repos.reservations.mark_canceled(reservation, canceled_at=now):
                raise AlreadyCanceledError(f"reservation {reservation_id} is already canceled")

        emit_audit_log(
            action="reservation.canceled",
            initiator="user",
            reservation_id=reservation.id,
            seat_id=reservation.seat_id,
            user_id=user_id,
            reservation_date=reservation.reservation_date,
            start_hour=reservation.start_hour,
            end_hour=reservation.end_hour,
            status_from=ReservationStatus.CONFIRMED,
            status_to=ReservationStatus.CANCELED,
        )
        return reservation

    async def list_by_user(self, user_id: str) -> list[tuple[Reservation, Seat]]:
        async with self.store.read() as repos:
            return await repos.reservations.list_by_user(user_id)

    async def get(self, reservation_id: int, *, user_id: str) -> Reservation | None:
        async with self.store.read() as repos:
            reservation = await repos.reservations.get(reservation_id)
        if reservation is None or reservation.user_id != user_id:
            return None
        return reservation

    async def count_active(self, user_id: str) -> int:
        async with self.store.read() as repos:
            return await repos.reservations.count_active_for_user(user_id, now=self.clock())

    async def active_summary(self, user_id: str) -> ActiveReservationSummary:
        count = await self.count_active(user_id)
        return ActiveReservationSummary(has_active_reservation=count > 0, active_count=count)


class ReservationGuard:
    """Fails fast with a specific error before handing the booking to the ledger.

    The pre-checks read without locks and may race; `ReservationLedger.commit` repeats them.
    """

    def __init__(self, ledger: ReservationLedger, resolver: AvailabilityResolver) -> None:
        self.ledger = ledger
        self.resolver = resolver

    async def book(
        self,
        *,
        user_id: str,
        seat_id: int,
        reservation_date: date,
        start_hour: int,
        end_hour: int,
        total_price: int,
    ) -> Reservation:
        validate_hour_range(start_hour, end_hour)
        if await self.ledger.count_active(user_id) > 0:
            raise ActiveReservationExistsError("user already holds an active reservation")
        status = await self.resolver.seat_status(seat_id, reservation_date, start_hour, end_hour)
        if status == SeatOccupancy.OCCUPIED:
            raise SeatConflictError(
                f"seat {seat_id} is taken on {reservation_date.isoformat()} between {start_hour} and {end_hour}"
            )
        return await self.ledger.commit(
            user_id=user_id,
            seat_id=seat_id,
            reservation_date=reservation_date,
            start_hour=start_hour,
            end_hour=end_hour,
            total_price=total_price,
        )
