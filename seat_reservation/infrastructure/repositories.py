from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, List, Optional, Sequence, Tuple, cast

from sqlalchemy import Select, and_, func, or_, select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import StorageUnavailableError
from ..domain.repositories import ReservationRepository, Repositories, SeatRepository
from ..models import Reservation, ReservationLock, ReservationStatus, Seat

logger = logging.getLogger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError)


class SqlAlchemySeatRepository(SeatRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> List[Seat]:
        rows = await self.session.scalars(select(Seat).order_by(Seat.id))
        return list(rows.all())

    async def get(self, seat_id: int) -> Seat | None:
        return await self.session.get(Seat, seat_id)


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock(self, scopes: Sequence[str]) -> None:
        for scope in sorted(set(scopes)):
            await self.session.execute(lock_row_upsert(scope))
            await self.session.execute(lock_row_select(scope))

    async def count_active_for_user(self, user_id: str, *, now: datetime) -> int:
        today = now.date()
        stmt = select(func.count(Reservation.id)).where(
            Reservation.user_id == user_id,
            Reservation.status == ReservationStatus.CONFIRMED,
            or_(
                Reservation.reservation_date > today,
                and_(Reservation.reservation_date == today, Reservation.end_hour > now.hour),
            ),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def list_confirmed_for_seat(self, seat_id: int, reservation_date: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(
                Reservation.seat_id == seat_id,
                Reservation.reservation_date == reservation_date,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .order_by(Reservation.start_hour)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def list_confirmed_on(self, reservation_date: date) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.reservation_date == reservation_date,
            Reservation.status == ReservationStatus.CONFIRMED,
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

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
        reservation = Reservation(
            user_id=user_id,
            seat_id=seat_id,
            reservation_date=reservation_date,
            start_hour=start_hour,
            end_hour=end_hour,
            total_price=total_price,
            status=ReservationStatus.CONFIRMED,
            created_at=created_at,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        return result if isinstance(result, Reservation) else None

    async def mark_canceled(self, reservation: Reservation, *, canceled_at: datetime) -> bool:
        result = await self.session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation.id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .values(status=ReservationStatus.CANCELED, canceled_at=canceled_at)
            .execution_options(synchronize_session="evaluate")
        )
        return bool(result.rowcount)

    async def list_by_user(self, user_id: str) -> List[Tuple[Reservation, Seat]]:
        stmt: Select[Tuple[Reservation, Seat]] = (
            select(Reservation, Seat)
            .join(Seat, Reservation.seat_id == Seat.id)
            .where(Reservation.user_id == user_id)
            .order_by(
                Reservation.reservation_date.desc(),
                Reservation.start_hour.desc(),
                Reservation.id.desc(),
            )
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Seat]], [tuple(row) for row in rows.all()])


def lock_row_upsert(scope: str):
    # On an existing row InnoDB takes the exclusive record lock here already.
    stmt = mysql_insert(ReservationLock).values(scope=scope)
    return stmt.on_duplicate_key_update(scope=stmt.inserted.scope)


def lock_row_select(scope: str):
    return select(ReservationLock.scope).where(ReservationLock.scope == scope).with_for_update()


class SqlAlchemyReservationStore:
    """Hands out repositories bound to one session; `write()` wraps them in a transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Repositories]:
        try:
            async with self.session_factory() as session:
                yield _repositories(session)
        except _UNAVAILABLE as exc:
            logger.warning("storage unavailable during read: %s", exc)
            raise StorageUnavailableError("storage unavailable") from exc

    @asynccontextmanager
    async def write(self) -> AsyncIterator[Repositories]:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield _repositories(session)
        except _UNAVAILABLE as exc:
            logger.warning("storage unavailable during write: %s", exc)
            raise StorageUnavailableError("storage unavailable") from exc


def _repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        seats=SqlAlchemySeatRepository(session),
        reservations=SqlAlchemyReservationRepository(session),
    )
