import httpx
import pytest

from loyalty_api.domain.orders import Accrual, OrderStatus
from loyalty_api.services.accrual import (
    AccrualTransportError,
    FakeAccrualSource,
    HttpAccrualClient,
    ProtocolError,
    RetryableSourceError,
)


def _client(handler) -> HttpAccrualClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpAccrualClient("http://accrual.test/", http_client=http_client, default_retry_after=8)


@pytest.mark.asyncio
async def test_processed_response_is_parsed():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"order": "79927398713", "status": "PROCESSED", "accrual": 729.98})

    info = await _client(handler).load(79927398713)

    assert seen == ["http://accrual.test/api/orders/79927398713"]
    assert info.number == 79927398713
    assert info.status is OrderStatus.PROCESSED
    assert info.accrual == Accrual(72998)


@pytest.mark.asyncio
async def test_registered_status_is_normalized_to_new():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"order": "18", "status": "REGISTERED"})

    info = await _client(handler).load(18)

    assert info.status is OrderStatus.NEW
    assert info.accrual is None


@pytest.mark.asyncio
async def test_no_content_means_not_registered_yet():
    info = await _client(lambda request: httpx.Response(204)).load(18)

    assert info.status is OrderStatus.NEW
    assert info.accrual is None


@pytest.mark.asyncio
async def test_rate_limit_uses_retry_after_header():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "30"}, text="No more than N requests per minute allowed")

    with pytest.raises(RetryableSourceError) as excinfo:
        await _client(handler).load(18)

    assert excinfo.value.after_seconds == 30


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "soon", "-5"])
async def test_rate_limit_without_usable_hint_defaults(header):
    headers = {"Retry-After": header} if header is not None else {}

    with pytest.raises(RetryableSourceError) as excinfo:
        await _client(lambda request: httpx.Response(429, headers=headers)).load(18)

    assert excinfo.value.after_seconds == 8


@pytest.mark.asyncio
async def test_internal_error_is_retryable_with_default_delay():
    with pytest.raises(RetryableSourceError) as excinfo:
        await _client(lambda request: httpx.Response(500)).load(18)

    assert excinfo.value.after_seconds == 8


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["PROCESSED"]),
        httpx.Response(200, json={"order": "18", "status": "PAID"}),
        httpx.Response(200, json={"order": "26", "status": "PROCESSED", "accrual": 1}),
        httpx.Response(200, json={"order": "18", "status": "PROCESSED", "accrual": "lots"}),
        httpx.Response(200, json={"order": "18", "status": "PROCESSED", "accrual": 99999999999999999.99}),
    ],
)
async def test_unexpected_responses_raise_protocol_error(response):
    with pytest.raises(ProtocolError):
        await _client(lambda request: response).load(18)


@pytest.mark.asyncio
async def test_transport_failure_is_not_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AccrualTransportError) as excinfo:
        await _client(handler).load(18)

    assert not isinstance(excinfo.value, RetryableSourceError)


@pytest.mark.asyncio
async def test_owned_client_is_closed_on_exit():
    async with HttpAccrualClient("http://accrual.test") as client:
        inner = client._client
    assert inner.is_closed


@pytest.mark.asyncio
async def test_fake_source_only_credits_processed_orders():
    source = FakeAccrualSource(seed=7)

    for number in range(0, 200, 2):
        info = await source.load(number)
        assert info.number == number
        assert info.status is not OrderStatus.REGISTERED
        if info.status is OrderStatus.PROCESSED:
            assert info.accrual is not None
        else:
            assert info.accrual is None
