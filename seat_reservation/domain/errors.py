from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_RANGE = "InvalidRange"
    SEAT_CONFLICT = "SeatConflict"
    ACTIVE_RESERVATION_EXISTS = "ActiveReservationExists"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    ALREADY_CANCELED = "AlreadyCanceled"
    ALREADY_ENDED = "AlreadyEnded"
    STORAGE_UNAVAILABLE = "StorageUnavailable"


class ReservationError(Exception):
    kind: ErrorKind


class InvalidRangeError(ReservationError):
    kind = ErrorKind.INVALID_RANGE


class SeatConflictError(ReservationError):
    kind = ErrorKind.SEAT_CONFLICT


class ActiveReservationExistsError(ReservationError):
    kind = ErrorKind.ACTIVE_RESERVATION_EXISTS


class NotFoundError(ReservationError):
    kind = ErrorKind.NOT_FOUND


class ReservationNotFoundError(NotFoundError):
    pass


class SeatNotFoundError(NotFoundError):
    pass


class ForbiddenError(ReservationError):
    kind = ErrorKind.FORBIDDEN


class AlreadyCanceledError(ReservationError):
    kind = ErrorKind.ALREADY_CANCELED


class AlreadyEndedError(ReservationError):
    kind = ErrorKind.ALREADY_ENDED


class StorageUnavailableError(ReservationError):
    """Transient failure of the persistence layer. Never retried by the engine."""

    kind = ErrorKind.STORAGE_UNAVAILABLE
