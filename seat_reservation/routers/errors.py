from fastapi import HTTPException, status

from ..domain.errors import ErrorKind, ReservationError

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_RANGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SEAT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.ACTIVE_RESERVATION_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.ALREADY_CANCELED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_ENDED: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(exc: ReservationError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND[exc.kind],
        detail={"message": str(exc), "code": str(exc.kind)},
    )
