import json
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, List

import pytest
from seat_reservation.domain.errors import StorageUnavailableError
from seat_reservation.domain.repositories import Repositories
from seat_reservation.infrastructure.memory import InMemoryReservationStore
from seat_reservation.models import ReservationStatus, Seat
from seat_reservation.usecases.reservations import ReservationLedger
from seat_reservation.utils import audit_log
from seat_reservation.utils.request_id import set_request_id


class DummyLogger:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="reservation.created",
        initiator="user",
        reservation_id=1,
        seat_id=5,
        user_id="alice",
        reservation_date=date(2024, 1, 1),
        start_hour=9,
        end_hour=12,
        status_from=None,
        status_to=ReservationStatus.CONFIRMED,
    )
    set_request_id(None)
    assert len(dummy_logger.messages) == 1
    payload = json.loads(dummy_logger.messages[0])
    assert payload["action"] == "reservation.created"
    assert payload["request_id"] == "req-123"
    assert payload["reservation_date"] == "2024-01-01"
    assert payload["status_to"] == "CONFIRMED"
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class FailingLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", FailingLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.canceled",
            initiator="user",
            reservation_id=1,
            seat_id=5,
            user_id="alice",
            reservation_date=date(2024, 1, 1),
            start_hour=9,
            end_hour=12,
            status_from=ReservationStatus.CONFIRMED,
            status_to=ReservationStatus.CANCELED,
        )


@pytest.mark.asyncio
async def test_ledger_emits_created_and_canceled(monkeypatch, ledger: ReservationLedger) -> None:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    reservation = await ledger.commit(
        user_id="alice",
        seat_id=5,
        reservation_date=date(2024, 1, 1),
        start_hour=9,
        end_hour=12,
        total_price=5000,
    )
    await ledger.cancel(reservation.id, user_id="alice")

    actions = [json.loads(m)["action"] for m in dummy_logger.messages]
    assert actions == ["reservation.created", "reservation.canceled"]
    created = json.loads(dummy_logger.messages[0])
    assert created["total_price"] == 5000
    assert created["seat_id"] == 5


@pytest.mark.asyncio
async def test_audit_failure_surfaces_after_commit(monkeypatch, ledger: ReservationLedger) -> None:
    class FailingLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", FailingLogger())
    with pytest.raises(RuntimeError):
        await ledger.commit(
            user_id="alice",
            seat_id=5,
            reservation_date=date(2024, 1, 1),
            start_hour=9,
            end_hour=12,
            total_price=5000,
        )
    assert await ledger.count_active("alice") == 1


class CommitFailingStore(InMemoryReservationStore):
    """Runs the block, then fails the way a lost connection fails a COMMIT."""

    fail_commits = False

    @asynccontextmanager
    async def write(self) -> AsyncIterator[Repositories]:
        async with super().write() as repos:
            yield repos
            if self.fail_commits:
                raise StorageUnavailableError("commit failed")


@pytest.mark.asyncio
async def test_no_audit_line_when_commit_fails(monkeypatch, clock) -> None:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)
    store = CommitFailingStore(seats=[Seat(id=5, type_id=1, capacity=1, location="A-5", notes=None)])
    ledger = ReservationLedger(store, clock=clock)

    store.fail_commits = True
    with pytest.raises(StorageUnavailableError):
        await ledger.commit(
            user_id="alice",
            seat_id=5,
            reservation_date=date(2024, 1, 1),
            start_hour=9,
            end_hour=12,
            total_price=5000,
        )
    assert dummy_logger.messages == []
    assert await ledger.list_by_user("alice") == []

    store.fail_commits = False
    reservation = await ledger.commit(
        user_id="alice",
        seat_id=5,
        reservation_date=date(2024, 1, 1),
        start_hour=9,
        end_hour=12,
        total_price=5000,
    )
    dummy_logger.messages.clear()

    store.fail_commits = True
    with pytest.raises(StorageUnavailableError):
        await ledger.cancel(reservation.id, user_id="alice")
    assert dummy_logger.messages == []
    assert await ledger.count_active("alice") == 1
