"""Unit tests for the display exchange rate cache."""

import httpx
import pytest

from tourshop.core.exceptions import ValidationError
from tourshop.services.exchange_rate_service import DEFAULT_RATES, ExchangeRateService, currency_for_country


def rates_service(handler, base_currency="USD", ttl_seconds=3600) -> ExchangeRateService:
    return ExchangeRateService(
        url="https://rates.test/latest",
        base_currency=base_currency,
        ttl_seconds=ttl_seconds,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_refresh_fetches_supported_currencies():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"rates": {"NZD": 1.7, "AUD": 1.55, "EUR": 0.9, "GBP": 0.8, "JPY": 150}})

    service = rates_service(handler)
    assert service.stale

    rates = await service.get_rates()

    assert rates == {"USD": 1.0, "NZD": 1.7, "AUD": 1.55, "EUR": 0.9, "GBP": 0.8}
    assert requests[0].url.params["from"] == "USD"
    assert requests[0].url.params["to"] == "NZD,AUD,EUR,GBP"
    assert service.fetched_at is not None
    assert not service.stale


@pytest.mark.asyncio
async def test_fresh_cache_is_not_refetched():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"rates": {"NZD": 1.7}})

    service = rates_service(handler)
    await service.get_rates()
    await service.get_rates()
    assert await service.refresh() is False

    assert len(calls) == 1
    assert await service.refresh(force=True) is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failure_keeps_default_rates():
    service = rates_service(lambda request: httpx.Response(503))

    rates = await service.get_rates()

    assert rates == DEFAULT_RATES
    assert service.stale
    assert service.fetched_at is None


@pytest.mark.asyncio
async def test_failure_after_success_keeps_last_rates():
    responses = iter([
        httpx.Response(200, json={"rates": {"NZD": 1.7}}),
        httpx.Response(200, content=b"not json"),
    ])
    service = rates_service(lambda request: next(responses))

    await service.refresh()
    assert await service.refresh(force=True) is False

    assert service.rates["NZD"] == 1.7


@pytest.mark.asyncio
async def test_defaults_are_rebased_to_base_currency():
    service = rates_service(lambda request: httpx.Response(503), base_currency="NZD")

    assert service.rates["NZD"] == 1.0
    assert service.rates["USD"] == 0.625


def test_cross_rate():
    service = ExchangeRateService(base_currency="USD")

    assert service.rate("USD", "USD") == 1.0
    assert service.rate("USD", "NZD") == 1.6
    assert service.rate("NZD", "USD") == 0.625
    assert service.rate("NZD", "AUD") == 0.9375


def test_unsupported_currency_is_rejected():
    service = ExchangeRateService(base_currency="USD")

    with pytest.raises(ValidationError) as exc_info:
        service.rate("USD", "JPY")

    assert exc_info.value.problem_details["violations"][0]["path"] == "currency"


@pytest.mark.parametrize(
    "segment, currency",
    [("nz", "NZD"), ("AU", "AUD"), ("uk", "GBP"), ("eu", "EUR"), ("india", "USD"), ("mars", "USD"), (None, "USD")],
)
def test_currency_for_country(segment, currency):
    assert currency_for_country(segment) == currency
