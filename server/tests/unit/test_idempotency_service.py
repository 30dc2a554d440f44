"""Unit tests for idempotent request replay."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from tourshop.core.database import utcnow
from tourshop.models.idempotency import IdempotencyRecord
from tourshop.services.idempotency_service import IdempotencyMismatchError, IdempotencyService

METHOD = "payment.create_order"


def test_request_hash_ignores_key_order():
    first = IdempotencyService.compute_request_hash({"session_id": "s-1", "note": "x"})
    second = IdempotencyService.compute_request_hash({"note": "x", "session_id": "s-1"})

    assert first == second
    assert first != IdempotencyService.compute_request_hash({"session_id": "s-2", "note": "x"})


@pytest.mark.asyncio
async def test_store_and_replay(test_session):
    service = IdempotencyService(test_session)
    body = {"session_id": "s-1"}

    assert await service.check_idempotency("key-1", METHOD, body, owner_ref="customer-1") is None

    await service.store_response("key-1", METHOD, body, 201, {"order_id": "ORDER-0001"}, owner_ref="customer-1")

    replay = await service.check_idempotency("key-1", METHOD, body, owner_ref="customer-1")
    assert replay == (201, {"order_id": "ORDER-0001"})


@pytest.mark.asyncio
async def test_key_reused_with_different_body(test_session):
    service = IdempotencyService(test_session)
    await service.store_response("key-1", METHOD, {"session_id": "s-1"}, 201, {}, owner_ref="customer-1")

    with pytest.raises(IdempotencyMismatchError) as exc_info:
        await service.check_idempotency("key-1", METHOD, {"session_id": "s-2"}, owner_ref="customer-1")

    assert exc_info.value.status_code == 422
    assert exc_info.value.problem_details["code"] == "IDEMPOTENCY_KEY_MISMATCH"


@pytest.mark.asyncio
async def test_keys_are_scoped_to_caller_and_method(test_session):
    service = IdempotencyService(test_session)
    body = {"session_id": "s-1"}
    await service.store_response("key-1", METHOD, body, 201, {}, owner_ref="customer-1")

    assert await service.check_idempotency("key-1", METHOD, body, owner_ref="customer-2") is None
    assert await service.check_idempotency("key-1", "payment.capture_order", body, owner_ref="customer-1") is None


@pytest.mark.asyncio
async def test_duplicate_store_keeps_first_response(test_session):
    service = IdempotencyService(test_session)
    body = {"session_id": "s-1"}

    await service.store_response("key-1", METHOD, body, 201, {"order_id": "first"}, owner_ref="customer-1")
    await service.store_response("key-1", METHOD, body, 201, {"order_id": "second"}, owner_ref="customer-1")

    replay = await service.check_idempotency("key-1", METHOD, body, owner_ref="customer-1")
    assert replay == (201, {"order_id": "first"})


@pytest.mark.asyncio
async def test_cleanup_removes_only_expired_records(test_session):
    service = IdempotencyService(test_session)
    await service.store_response("live", METHOD, {}, 201, {})
    await service.store_response("stale", METHOD, {}, 201, {})

    stale = (await test_session.execute(
        select(IdempotencyRecord).where(IdempotencyRecord.idempotency_key == "stale")
    )).scalar_one()
    stale.expires_at = utcnow() - timedelta(minutes=1)
    await test_session.commit()

    assert await service.check_idempotency("stale", METHOD, {}) is None
    assert await service.cleanup_expired_records() == 1

    remaining = await test_session.scalar(select(func.count(IdempotencyRecord.id)))
    assert remaining == 1
