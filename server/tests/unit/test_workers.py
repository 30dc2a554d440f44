"""Unit tests for background workers."""

import asyncio
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select

from tourshop.core.database import utcnow
from tourshop.models.booking import Booking, BookingStatus
from tourshop.models.idempotency import IdempotencyRecord
from tourshop.services.exchange_rate_service import ExchangeRateService
from tourshop.services.idempotency_service import IdempotencyService
from tourshop.workers.base import BaseWorker
from tourshop.workers.exchange_rate_worker import ExchangeRateRefreshWorker
from tourshop.workers.idempotency_cleanup_worker import IdempotencyCleanupWorker
from tourshop.workers.manager import WorkerManager
from tourshop.workers.pending_booking_worker import PendingBookingExpiryWorker


class CountingWorker(BaseWorker):

    def __init__(self, fail: bool = False):
        super().__init__(name="Counting", interval_seconds=0)
        self.calls = 0
        self.fail = fail

    async def process(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_base_worker_start_and_stop():
    worker = CountingWorker()

    await worker.start()
    assert worker.running
    await asyncio.sleep(0.05)
    await worker.stop()

    assert not worker.running
    assert worker.calls > 0
    calls = worker.calls
    await asyncio.sleep(0.02)
    assert worker.calls == calls


@pytest.mark.asyncio
async def test_failing_iteration_does_not_stop_worker():
    worker = CountingWorker(fail=True)

    await worker.start()
    await asyncio.sleep(0.05)
    await worker.stop()

    assert worker.calls > 1


@pytest.mark.asyncio
async def test_worker_manager_starts_and_stops_all():
    manager = WorkerManager()
    assert set(manager.get_worker_status()) == {
        "pending_booking_expiry",
        "exchange_rate_refresh",
        "idempotency_cleanup",
    }

    manager.workers = {"first": CountingWorker(), "second": CountingWorker()}
    await manager.start_all()
    assert manager.get_worker_status() == {"first": True, "second": True}
    await manager.stop_all()

    assert manager.get_worker_status() == {"first": False, "second": False}


@pytest.mark.asyncio
async def test_pending_booking_worker_expires_overdue(session_factory, test_session, pending_booking):
    booking = await pending_booking()
    booking_id = booking.id
    booking.expires_at = utcnow() - timedelta(minutes=1)
    await test_session.commit()

    worker = PendingBookingExpiryWorker(session_factory=session_factory)
    assert await worker.process() == 1
    assert await worker.process() == 0

    test_session.expire_all()
    status = await test_session.scalar(select(Booking.status).where(Booking.id == booking_id))
    assert status == BookingStatus.EXPIRED


@pytest.mark.asyncio
async def test_pending_booking_worker_leaves_open_window(session_factory, pending_booking):
    await pending_booking()

    assert await PendingBookingExpiryWorker(session_factory=session_factory).process() == 0


@pytest.mark.asyncio
async def test_idempotency_cleanup_worker(session_factory, test_session):
    service = IdempotencyService(test_session)
    await service.store_response("live", "payment.create_order", {}, 201, {})
    await service.store_response("stale", "payment.create_order", {}, 201, {})
    stale = (await test_session.execute(
        select(IdempotencyRecord).where(IdempotencyRecord.idempotency_key == "stale")
    )).scalar_one()
    stale.expires_at = utcnow() - timedelta(minutes=1)
    await test_session.commit()

    worker = IdempotencyCleanupWorker(session_factory=session_factory)

    assert await worker.process() == 1
    assert await worker.process() == 0


@pytest.mark.asyncio
async def test_exchange_rate_worker_forces_refresh():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"rates": {"NZD": 1.7}})

    service = ExchangeRateService(
        url="https://rates.test/latest",
        base_currency="USD",
        transport=httpx.MockTransport(handler),
    )
    worker = ExchangeRateRefreshWorker(service=service)

    assert await worker.process() is True
    assert await worker.process() is True
    assert len(calls) == 2
