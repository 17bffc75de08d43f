from fastapi import Depends, Header, HTTPException, Request, status

from .domain.repositories import ReservationStore
from .usecases.availability import AvailabilityResolver
from .usecases.reservations import ReservationGuard, ReservationLedger
from .utils.time import Clock

MAX_USER_ID_LENGTH = 64


def get_store(request: Request) -> ReservationStore:
    return request.app.state.store


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """The upstream authenticator forwards the verified user id in X-User-Id."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    user_id = x_user_id.strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id")
    return user_id


def get_ledger(
    store: ReservationStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> ReservationLedger:
    return ReservationLedger(store, clock=clock)


def get_resolver(store: ReservationStore = Depends(get_store)) -> AvailabilityResolver:
    return AvailabilityResolver(store)


def get_guard(
    ledger: ReservationLedger = Depends(get_ledger),
    resolver: AvailabilityResolver = Depends(get_resolver),
) -> ReservationGuard:
    return ReservationGuard(ledger, resolver)
