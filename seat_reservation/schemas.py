from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .models import Reservation, ReservationStatus, Seat, SeatOccupancy


class SeatAvailability(BaseModel):
    seat_id: int
    type_id: int
    capacity: int
    location: Optional[str]
    notes: Optional[str]
    status: SeatOccupancy

    @classmethod
    def from_db(cls, *, seat: Seat, status: SeatOccupancy) -> "SeatAvailability":
        return cls(
            seat_id=seat.id,
            type_id=seat.type_id,
            capacity=seat.capacity,
            location=seat.location,
            notes=seat.notes,
            status=status,
        )


class ReservationCreate(BaseModel):
    seat_id: int
    reservation_date: date
    # Range checks are left to the engine so clients get an InvalidRange error.
    start_hour: int
    end_hour: int
    total_price: int = Field(ge=0)


class ReservationRead(BaseModel):
    reservation_id: int
    user_id: str
    seat_id: int
    reservation_date: date
    start_hour: int
    end_hour: int
    total_price: int
    status: ReservationStatus
    created_at: datetime
    location: Optional[str] = None
    seat_notes: Optional[str] = None

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat(sep=" ", timespec="seconds")

    @classmethod
    def from_db(cls, *, reservation: Reservation, seat: Optional[Seat] = None) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            user_id=reservation.user_id,
            seat_id=reservation.seat_id,
            reservation_date=reservation.reservation_date,
            start_hour=reservation.start_hour,
            end_hour=reservation.end_hour,
            total_price=reservation.total_price,
            status=reservation.status,
            created_at=reservation.created_at,
            location=seat.location if seat is not None else None,
            seat_notes=seat.notes if seat is not None else None,
        )


class ActiveReservationRead(BaseModel):
    has_active_reservation: bool
    active_count: int
