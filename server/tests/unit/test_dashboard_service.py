"""Unit tests for admin dashboard aggregates."""

import pytest

from tourshop.services.dashboard_service import DashboardService
from tourshop.services.payment_service import PaymentService


@pytest.mark.asyncio
async def test_empty_dashboard(test_session):
    stats = await DashboardService(test_session).get_stats()

    assert stats.tours == 0
    assert stats.bookings == 0
    assert stats.revenue == {}
    assert stats.recent_bookings == []
    assert stats.popular_tours == []


@pytest.mark.asyncio
async def test_dashboard_counts_and_revenue(test_session, pending_booking, gateway):
    payments = PaymentService(test_session, gateway)
    paid = await pending_booking("customer-a")
    await payments.capture_order(str(paid.id), paid.payment_order_id, "customer-a")
    deposit = await pending_booking("customer-b", payment_type="DEPOSIT")
    await payments.capture_order(str(deposit.id), deposit.payment_order_id, "customer-b")
    await pending_booking("customer-c")

    stats = await DashboardService(test_session).get_stats()

    assert stats.tours == 1
    assert stats.departures == 1
    assert stats.bookings == 3
    assert stats.pending_bookings == 1
    assert stats.confirmed_bookings == 2
    assert stats.customers == 3
    # Unpaid bookings do not count; deposits count only what was collected
    assert stats.revenue == {"NZD": 323000 + 40000}
    assert len(stats.recent_bookings) == 3
    assert [(p.tour.code, p.booking_count) for p in stats.popular_tours] == [("SIE12", 3)]
