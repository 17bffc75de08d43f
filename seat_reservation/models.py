from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


class ReservationStatus(StrEnum):
    CONFIRMED = "CONFIRMED"
    CANCELED = "CANCELED"


class SeatOccupancy(StrEnum):
    FREE = "FREE"
    OCCUPIED = "OCCUPIED"


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (CheckConstraint("capacity >= 1", name="chk_seats_capacity"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint(
            "start_hour >= 0 AND start_hour < end_hour AND end_hour <= 24",
            name="chk_res_hours",
        ),
        Index("idx_res_seat_date", "seat_id", "reservation_date"),
        Index("idx_res_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    seat_id: Mapped[int] = mapped_column(ForeignKey("seats.id"), nullable=False)
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    end_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(
            ReservationStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=ReservationStatus.CONFIRMED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)


class ReservationLock(Base):
    """One row per lock scope; a write transaction holds the row lock while it checks and inserts."""

    __tablename__ = "reservation_locks"

    scope: Mapped[str] = mapped_column(String(128), primary_key=True)
