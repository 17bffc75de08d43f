from typing import Any, cast

import pytest
from seat_reservation.domain.errors import SeatConflictError, StorageUnavailableError
from seat_reservation.infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyReservationStore,
    lock_row_select,
    lock_row_upsert,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _down() -> OperationalError:
    return OperationalError("SELECT 1", None, Exception("server has gone away"))


class DummyBegin:
    async def __aenter__(self) -> "DummyBegin":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class DummySession:
    def __init__(self, *, fail_on_enter: bool = False) -> None:
        self.fail_on_enter = fail_on_enter
        self.executed: list[Any] = []

    async def __aenter__(self) -> "DummySession":
        if self.fail_on_enter:
            raise _down()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> DummyBegin:
        return DummyBegin()

    async def execute(self, stmt: Any) -> None:
        self.executed.append(stmt)
        raise _down()


def _store(session: DummySession) -> SqlAlchemyReservationStore:
    return SqlAlchemyReservationStore(cast(async_sessionmaker[AsyncSession], lambda: session))


def test_lock_row_upsert_compiles_to_on_duplicate_key_update() -> None:
    sql = str(lock_row_upsert("seat:5:2024-01-01").compile(dialect=mysql.dialect()))
    assert sql.startswith("INSERT INTO reservation_locks")
    assert "ON DUPLICATE KEY UPDATE" in sql


def test_lock_row_select_takes_row_lock() -> None:
    sql = str(lock_row_select("user:alice").compile(dialect=mysql.dialect()))
    assert "FROM reservation_locks" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


@pytest.mark.asyncio
async def test_read_surfaces_connection_failure_as_storage_unavailable() -> None:
    store = _store(DummySession(fail_on_enter=True))
    with pytest.raises(StorageUnavailableError) as excinfo:
        async with store.read():
            pass
    assert isinstance(excinfo.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_write_surfaces_failure_inside_transaction_as_storage_unavailable() -> None:
    session = DummySession()
    store = _store(session)
    with pytest.raises(StorageUnavailableError):
        async with store.write() as repos:
            await repos.reservations.lock(["user:alice"])
    assert len(session.executed) == 1


@pytest.mark.asyncio
async def test_write_passes_domain_errors_through() -> None:
    store = _store(DummySession())
    with pytest.raises(SeatConflictError):
        async with store.write() as repos:
            assert isinstance(repos.reservations, SqlAlchemyReservationRepository)
            raise SeatConflictError("taken")
