"""Integration tests for API endpoints."""

import re

import httpx
import pytest

from conftest import make_token
from tourshop.core.dependencies import get_exchange_rate_service
from tourshop.services.exchange_rate_service import ExchangeRateService


async def run_checkout(client, headers, tour_id, step_payloads) -> str:
    """Walk the wizard over HTTP and return the ready session id."""
    response = await client.post("/v1/checkout/start", json={"tour_id": tour_id}, headers=headers)
    assert response.status_code == 200
    session_id = response.json()["id"]

    for step, data in step_payloads.items():
        response = await client.post(
            "/v1/checkout/step",
            json={"session_id": session_id, "step": step, "data": data},
            headers=headers,
        )
        assert response.status_code == 200, response.json()

    assert response.json()["status"] == "READY"
    return session_id


@pytest.mark.asyncio
async def test_create_tour_endpoint(test_client, admin_headers, sample_tour_data):
    response = await test_client.post("/v1/tour/create", json=sample_tour_data, headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["slug"] == "south-island-explorer"
    assert data["price_from"] == {"amount": 150000, "currency": "NZD"}
    assert [extra["type"] for extra in data["trip_extras"]] == ["KITTY", "OPTIONAL_ACTIVITY", "OTHER"]

    fetched = await test_client.post("/v1/tour/get", json={"slug": "south-island-explorer"})
    assert fetched.json()["id"] == data["id"]

    listed = await test_client.post("/v1/tour/list", json={"limit": 10})
    assert [item["code"] for item in listed.json()["items"]] == ["SIE12"]


@pytest.mark.asyncio
async def test_create_tour_missing_auth(test_client, sample_tour_data):
    response = await test_client.post("/v1/tour/create", json=sample_tour_data)

    assert response.status_code == 401
    data = response.json()
    assert data["status"] == 401
    assert "authorization" in data["title"].lower()
    assert response.headers["content-type"].startswith("application/problem+json")


@pytest.mark.asyncio
async def test_create_tour_rejects_bad_token(test_client, sample_tour_data):
    response = await test_client.post(
        "/v1/tour/create",
        json=sample_tour_data,
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_tour_requires_admin(test_client, customer_headers, sample_tour_data):
    response = await test_client.post("/v1/tour/create", json=sample_tour_data, headers=customer_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_singular_role_claim_grants_admin(test_client, sample_tour_data):
    headers = {"Authorization": f"Bearer {make_token('admin-2', role='admin')}"}

    response = await test_client.post("/v1/tour/create", json=sample_tour_data, headers=headers)

    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("claims", [
    {"roles": "not-admin-customer"},
    {"roles": "administrator"},
    {"role": "admins"},
    {"roles": [["admin"]]},
])
async def test_role_claims_match_exactly(test_client, sample_tour_data, claims):
    headers = {"Authorization": f"Bearer {make_token('customer-2', **claims)}"}

    response = await test_client.post("/v1/tour/create", json=sample_tour_data, headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_tour_invalid_data(test_client, admin_headers, sample_tour_data):
    response = await test_client.post(
        "/v1/tour/create",
        json={**sample_tour_data, "title": "", "slug": "Not A Slug"},
        headers=admin_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    paths = {violation["path"] for violation in data["violations"]}
    assert {"title", "slug"} <= paths


@pytest.mark.asyncio
async def test_catalog_listing(test_client, sample_tour, sample_departure, twin_room, single_room):
    departures = await test_client.post("/v1/departure/list", json={"tour_id": str(sample_tour.id)})
    assert departures.status_code == 200
    item = departures.json()["items"][0]
    assert item["unit_price"] == {"amount": 150000, "currency": "NZD"}
    assert item["status"] == "AVAILABLE"

    rooms = await test_client.post("/v1/room-option/list", json={"tour_id": str(sample_tour.id)})
    assert [room["room_type"] for room in rooms.json()["items"]] == ["Twin Share", "Single Room"]


@pytest.mark.asyncio
async def test_departure_admin_endpoints(test_client, admin_headers, sample_tour):
    created = await test_client.post(
        "/v1/departure/create",
        json={
            "tour_id": str(sample_tour.id),
            "departure_date": "2027-03-01",
            "end_date": "2027-03-12",
            "available_spaces": 4,
        },
        headers=admin_headers,
    )
    assert created.status_code == 200
    departure_id = created.json()["id"]
    assert created.json()["status"] == "FILLING_FAST"

    updated = await test_client.post(
        "/v1/departure/update",
        json={"departure_id": departure_id, "available_spaces": 0},
        headers=admin_headers,
    )
    assert updated.json()["status"] == "SOLD_OUT"

    deleted = await test_client.post(
        "/v1/departure/delete",
        json={"departure_id": departure_id},
        headers=admin_headers,
    )
    assert deleted.json() == {"deleted": True, "departure_id": departure_id}


@pytest.mark.asyncio
async def test_tour_search_endpoint(test_client, admin_headers, sample_tour, sample_tour_data):
    await test_client.post(
        "/v1/tour/create",
        json={**sample_tour_data, "slug": "grand-tour", "code": "GT21", "duration_days": 21, "price_from": 320000},
        headers=admin_headers,
    )

    cheapest_first = await test_client.post("/v1/tour/list", json={"sort": "price-asc"})
    assert cheapest_first.status_code == 200
    assert [tour["slug"] for tour in cheapest_first.json()["items"]] == ["south-island-explorer", "grand-tour"]

    long_tours = await test_client.post("/v1/tour/list", json={"min_duration": 14, "keyword": "queenstown"})
    assert [tour["slug"] for tour in long_tours.json()["items"]] == ["grand-tour"]

    inverted = await test_client.post("/v1/tour/list", json={"min_price": 5000, "max_price": 100})
    assert inverted.status_code == 422

    unknown_sort = await test_client.post("/v1/tour/list", json={"sort": "popularity"})
    assert unknown_sort.status_code == 422


@pytest.mark.asyncio
async def test_tour_update_and_delete_endpoints(test_client, admin_headers, customer_headers, sample_tour):
    tour_id = str(sample_tour.id)

    forbidden = await test_client.post(
        "/v1/tour/update", json={"tour_id": tour_id, "title": "Renamed"}, headers=customer_headers
    )
    assert forbidden.status_code == 403

    updated = await test_client.post(
        "/v1/tour/update", json={"tour_id": tour_id, "title": "Renamed", "price_from": 160000}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert updated.json()["title"] == "Renamed"
    assert updated.json()["slug"] == "south-island-explorer"

    deleted = await test_client.post("/v1/tour/delete", json={"tour_id": tour_id}, headers=admin_headers)
    assert deleted.json() == {"deleted": True, "tour_id": tour_id}

    missing = await test_client.post("/v1/tour/get", json={"tour_id": tour_id})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_booked_tour_conflicts(
    test_client, admin_headers, customer_headers, sample_tour, step_payloads
):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    await test_client.post(
        "/v1/payment/create-order",
        json={"session_id": session_id},
        headers={**customer_headers, "Idempotency-Key": "order-key-1"},
    )

    response = await test_client.post("/v1/tour/delete", json={"tour_id": str(sample_tour.id)}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["conflicting_resource"]["bookings"] == 1


@pytest.mark.asyncio
async def test_checkout_step_violations(test_client, customer_headers, sample_tour, step_payloads):
    started = await test_client.post(
        "/v1/checkout/start",
        json={"tour_id": str(sample_tour.id)},
        headers=customer_headers,
    )
    session_id = started.json()["id"]

    response = await test_client.post(
        "/v1/checkout/step",
        json={"session_id": session_id, "step": 1, "data": {**step_payloads[1], "number_of_travelers": 11}},
        headers=customer_headers,
    )

    assert response.status_code == 422
    assert "departure_id" in [violation["path"] for violation in response.json()["violations"]]

    skipped = await test_client.post(
        "/v1/checkout/step",
        json={"session_id": session_id, "step": 3, "data": step_payloads[3]},
        headers=customer_headers,
    )
    assert skipped.status_code == 422


@pytest.mark.asyncio
async def test_checkout_back_and_quote(test_client, customer_headers, sample_tour, step_payloads):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)

    back = await test_client.post("/v1/checkout/back", json={"session_id": session_id}, headers=customer_headers)
    assert back.json()["current_step"] == 4
    assert back.json()["current_step_name"] == "trip_extras"

    quote = await test_client.post("/v1/checkout/quote", json={"session_id": session_id}, headers=customer_headers)
    data = quote.json()
    assert data["trip"] == {"label": "Trip", "unit_price": 150000, "quantity": 2, "amount": 300000}
    assert data["total"] == 323000
    assert data["amount_due_now"] == 323000


@pytest.mark.asyncio
async def test_checkout_is_private(test_client, customer_headers, sample_tour, step_payloads):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)

    response = await test_client.post(
        "/v1/checkout/get",
        json={"session_id": session_id},
        headers={"Authorization": f"Bearer {make_token('customer-2')}"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_order_and_capture_flow(
    test_client, customer_headers, sample_tour, step_payloads, gateway, notifications
):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    headers = {**customer_headers, "Idempotency-Key": "order-key-1"}

    created = await test_client.post("/v1/payment/create-order", json={"session_id": session_id}, headers=headers)
    assert created.status_code == 200
    order = created.json()
    assert order["amount"] == 323000
    assert order["currency"] == "NZD"
    assert order["booking_number"].startswith("BK-")

    # Same key and body replays the stored response without a second order
    replay = await test_client.post("/v1/payment/create-order", json={"session_id": session_id}, headers=headers)
    assert replay.json() == order
    assert len(gateway.orders) == 1

    captured = await test_client.post(
        "/v1/payment/capture-order",
        json={"order_id": order["order_id"], "booking_id": order["booking_id"]},
        headers=customer_headers,
    )
    assert captured.status_code == 200
    booking = captured.json()
    assert booking["status"] == "CONFIRMED"
    assert booking["payment_status"] == "PAID"
    assert booking["balance_due"] == 0
    assert order["booking_number"] in notifications.outbox[-1].subject


@pytest.mark.asyncio
async def test_create_order_needs_idempotency_key(test_client, customer_headers, sample_tour, step_payloads):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)

    response = await test_client.post(
        "/v1/payment/create-order",
        json={"session_id": session_id},
        headers=customer_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_idempotency_key_reused_for_other_session(
    test_client, customer_headers, sample_tour, step_payloads
):
    first = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    second = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    headers = {**customer_headers, "Idempotency-Key": "order-key-1"}

    await test_client.post("/v1/payment/create-order", json={"session_id": first}, headers=headers)
    response = await test_client.post("/v1/payment/create-order", json={"session_id": second}, headers=headers)

    assert response.status_code == 422
    assert response.json()["code"] == "IDEMPOTENCY_KEY_MISMATCH"


@pytest.mark.asyncio
async def test_gateway_outage_is_not_replayed(
    test_client, customer_headers, sample_tour, step_payloads, gateway, gateway_down
):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    headers = {**customer_headers, "Idempotency-Key": "order-key-1"}
    gateway.create_error = gateway_down

    failed = await test_client.post("/v1/payment/create-order", json={"session_id": session_id}, headers=headers)
    assert failed.status_code == 502
    assert failed.json()["retryable"] is True

    gateway.create_error = None
    retried = await test_client.post("/v1/payment/create-order", json={"session_id": session_id}, headers=headers)
    assert retried.status_code == 200


@pytest.mark.asyncio
async def test_cancel_order_endpoint(test_client, customer_headers, sample_tour, step_payloads):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    created = await test_client.post(
        "/v1/payment/create-order",
        json={"session_id": session_id},
        headers={**customer_headers, "Idempotency-Key": "order-key-1"},
    )

    cancelled = await test_client.post(
        "/v1/payment/cancel-order",
        json={"booking_id": created.json()["booking_id"]},
        headers=customer_headers,
    )

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"


@pytest.mark.asyncio
async def test_admin_manage_booking_flow(
    test_client, admin_headers, customer_headers, sample_tour, step_payloads, notifications
):
    session_id = await run_checkout(test_client, customer_headers, str(sample_tour.id), step_payloads)
    order = (await test_client.post(
        "/v1/payment/create-order",
        json={"session_id": session_id},
        headers={**customer_headers, "Idempotency-Key": "order-key-1"},
    )).json()

    requested = await test_client.post(
        "/v1/admin/bookings/request-otp",
        json={"booking_number": order["booking_number"], "email": "casey@example.com"},
        headers=admin_headers,
    )
    assert requested.status_code == 200
    assert requested.json()["sent"] is True
    code = re.search(r"code is (\d{6})", notifications.outbox[-1].body).group(1)

    verified = await test_client.post(
        "/v1/admin/bookings/verify-otp",
        json={"booking_number": order["booking_number"], "email": "casey@example.com", "otp": code},
        headers=admin_headers,
    )
    assert verified.status_code == 200
    details = verified.json()
    assert details["tour_slug"] == "south-island-explorer"
    assert [t["first_name"] for t in details["travelers"]] == ["Casey", "Jordan"]

    confirmed = await test_client.post(
        "/v1/admin/bookings/status",
        json={"booking_id": order["booking_id"], "status": "CONFIRMED"},
        headers=admin_headers,
    )
    assert confirmed.json()["status"] == "CONFIRMED"

    paid = await test_client.post(
        "/v1/admin/bookings/payment-status",
        json={"booking_id": order["booking_id"], "payment_status": "PAID"},
        headers=admin_headers,
    )
    assert paid.json()["payment_status"] == "PAID"

    stats = await test_client.post("/v1/admin/dashboard/stats", headers=admin_headers)
    assert stats.status_code == 200
    data = stats.json()
    assert data["totals"]["bookings"] == 1
    assert data["revenue"] == [{"amount": 323000, "currency": "NZD"}]
    assert data["popular_tours"][0]["slug"] == "south-island-explorer"


@pytest.mark.asyncio
async def test_admin_routes_reject_customers(test_client, customer_headers):
    response = await test_client.post("/v1/admin/dashboard/stats", headers=customer_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_currency_rates_endpoint(test_app, test_client):
    rates = ExchangeRateService(
        url="https://rates.test/latest",
        base_currency="USD",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"rates": {"NZD": 1.7, "AUD": 1.55, "EUR": 0.9, "GBP": 0.8}})
        ),
    )
    test_app.dependency_overrides[get_exchange_rate_service] = lambda: rates

    response = await test_client.get("/v1/currency/rates", params={"country": "NZ"})

    assert response.status_code == 200
    data = response.json()
    assert data["base"] == "USD"
    assert data["rates"]["NZD"] == 1.7
    assert data["stale"] is False
    assert data["country"] == "nz"
    assert data["country_currency"] == "NZD"


@pytest.mark.asyncio
async def test_openapi_documents_problem_responses(test_client):
    schema = (await test_client.get("/openapi.json")).json()

    responses = schema["paths"]["/v1/payment/create-order"]["post"]["responses"]
    assert {"402", "409", "502"} <= set(responses)
    assert "Problem" in schema["components"]["schemas"]
    assert "Violation" in schema["components"]["schemas"]
