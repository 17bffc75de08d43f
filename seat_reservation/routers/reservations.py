from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..deps import get_current_user_id, get_guard, get_ledger
from ..domain.errors import ReservationError
from ..schemas import ActiveReservationRead, ReservationCreate, ReservationRead
from ..usecases.reservations import ReservationGuard, ReservationLedger
from .errors import to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    guard: ReservationGuard = Depends(get_guard),
    user_id: str = Depends(get_current_user_id),
) -> ReservationRead:
    try:
        reservation = await guard.book(
            user_id=user_id,
            seat_id=payload.seat_id,
            reservation_date=payload.reservation_date,
            start_hour=payload.start_hour,
            end_hour=payload.end_hour,
            total_price=payload.total_price,
        )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    ledger: ReservationLedger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
) -> list[ReservationRead]:
    try:
        rows = await ledger.list_by_user(user_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return [ReservationRead.from_db(reservation=res, seat=seat) for res, seat in rows]


@router.get("/me/reservations/active", response_model=ActiveReservationRead)
async def get_my_active_reservations(
    ledger: ReservationLedger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
) -> ActiveReservationRead:
    try:
        summary = await ledger.active_summary(user_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ActiveReservationRead(
        has_active_reservation=summary.has_active_reservation,
        active_count=summary.active_count,
    )


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    ledger: ReservationLedger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
) -> ReservationRead:
    try:
        reservation = await ledger.get(reservation_id, user_id=user_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationRead.from_db(reservation=reservation)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    ledger: ReservationLedger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
) -> ReservationRead:
    try:
        reservation = await ledger.cancel(reservation_id, user_id=user_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ReservationRead.from_db(reservation=reservation)
