import asyncio

import httpx
import pytest

from conftest import FakeClock, MockApi, RecordingSleep, json_response
from storefront_payment_ms.shared.domain.exceptions import (
    CircuitOpenError,
    PaymentError,
    PaymentErrorKind,
)
from storefront_payment_ms.shared.infrastructure.http_clients import (
    BaseApiClient,
    BearerTokenApiClient,
    CircuitBreaker,
    CircuitState,
)


class TokenClient(BaseApiClient):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.tokens_issued = 0

    def get_auth_headers(self) -> dict[str, str]:
        self.tokens_issued += 1
        return {"Authorization": f"Bearer token-{self.tokens_issued}"}


def _client(api: MockApi, sleep: RecordingSleep, **kwargs) -> TokenClient:
    kwargs.setdefault("max_retries", 3)
    kwargs.setdefault("retry_delay_ms", 100)
    return TokenClient("https://api.test", transport=api.transport, sleep=sleep, **kwargs)


async def test_success_returns_json_and_injects_auth_per_request(sleep):
    api = MockApi(json_response(200, {"id": "1"}), json_response(200, {"id": "2"}))
    client = _client(api, sleep)

    assert await client.request("GET", "/orders/1") == {"id": "1"}
    assert await client.request("GET", "/orders/2") == {"id": "2"}

    assert api.requests[0].headers["Authorization"] == "Bearer token-1"
    assert api.requests[1].headers["Authorization"] == "Bearer token-2"
    assert api.requests[0].url.path == "/orders/1"
    assert sleep.delays == []


@pytest.mark.parametrize("status", [500, 503])
async def test_server_errors_retry_with_exponential_backoff(sleep, status):
    api = MockApi(*[json_response(status, {"name": "INTERNAL"}) for _ in range(4)])
    client = _client(api, sleep)

    with pytest.raises(PaymentError) as exc_info:
        await client.request("POST", "/orders", json={})

    assert api.calls == 4
    assert sleep.delays == [0.1, 0.2, 0.4]
    assert exc_info.value.kind is PaymentErrorKind.SERVER_ERROR
    assert exc_info.value.status_code == status


async def test_transient_failure_then_success(sleep):
    api = MockApi(json_response(503, {}), json_response(200, {"ok": True}))
    client = _client(api, sleep)

    assert await client.request("GET", "/ping") == {"ok": True}
    assert api.calls == 2
    assert sleep.delays == [0.1]


@pytest.mark.parametrize(
    "status, kind",
    [
        (400, PaymentErrorKind.CLIENT_ERROR),
        (404, PaymentErrorKind.CLIENT_ERROR),
        (401, PaymentErrorKind.AUTHENTICATION_ERROR),
        (403, PaymentErrorKind.AUTHENTICATION_ERROR),
    ],
)
async def test_client_errors_are_not_retried(sleep, status, kind):
    api = MockApi(json_response(status, {"code": "NOPE", "message": "no"}))
    client = _client(api, sleep)

    with pytest.raises(PaymentError) as exc_info:
        await client.request("GET", "/orders/1")

    assert api.calls == 1
    assert sleep.delays == []
    assert exc_info.value.kind is kind
    assert exc_info.value.gateway_error_code == "NOPE"
    assert exc_info.value.details["message"] == "no"


async def test_network_errors_are_classified_and_retried(sleep):
    api = MockApi(
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        json_response(200, {"ok": True}),
    )
    client = _client(api, sleep)

    assert await client.request("GET", "/ping") == {"ok": True}
    assert sleep.delays == [0.1, 0.2]


async def test_network_error_surfaces_after_retries(sleep):
    api = MockApi(*[httpx.ConnectError("down") for _ in range(2)])
    client = _client(api, sleep, max_retries=1)

    with pytest.raises(PaymentError) as exc_info:
        await client.request("GET", "/ping")

    assert exc_info.value.kind is PaymentErrorKind.NETWORK_ERROR
    assert exc_info.value.status_code is None


async def test_malformed_json_is_unknown_error(sleep):
    api = MockApi(httpx.Response(200, content=b"<html>"))
    client = _client(api, sleep)

    with pytest.raises(PaymentError) as exc_info:
        await client.request("GET", "/ping")

    assert exc_info.value.kind is PaymentErrorKind.UNKNOWN_ERROR
    assert api.calls == 1


async def test_empty_success_body_returns_empty_dict(sleep):
    api = MockApi(httpx.Response(204))
    client = _client(api, sleep)

    assert await client.request("POST", "/void") == {}


async def test_breaker_rejects_without_network_call_after_threshold(sleep):
    clock = FakeClock()
    breaker = CircuitBreaker("api", failure_threshold=2, reset_window=60, clock=clock)
    api = MockApi(json_response(500, {}), json_response(500, {}), json_response(200, {}))
    client = _client(api, sleep, max_retries=0, circuit_breaker=breaker)

    for _ in range(2):
        with pytest.raises(PaymentError):
            await client.request("GET", "/ping")

    with pytest.raises(CircuitOpenError):
        await client.request("GET", "/ping")
    assert api.calls == 2

    clock.advance(60)
    assert await client.request("GET", "/ping") == {}
    assert breaker.state is CircuitState.CLOSED


async def test_breaker_trips_during_retries(sleep):
    breaker = CircuitBreaker("api", failure_threshold=2, clock=FakeClock())
    api = MockApi(json_response(500, {}), json_response(500, {}))
    client = _client(api, sleep, max_retries=3, circuit_breaker=breaker)

    with pytest.raises(CircuitOpenError):
        await client.request("GET", "/ping")
    assert api.calls == 2
    assert sleep.delays == [0.1]


async def test_client_error_resets_consecutive_failures(sleep):
    breaker = CircuitBreaker("api", failure_threshold=2, clock=FakeClock())
    api = MockApi(json_response(500, {}), json_response(400, {}), json_response(500, {}))
    client = _client(api, sleep, max_retries=0, circuit_breaker=breaker)

    for _ in range(3):
        with pytest.raises(PaymentError):
            await client.request("GET", "/ping")

    assert breaker.state is CircuitState.CLOSED
    assert breaker.failure_count == 1


async def test_deadline_stops_retrying(sleep):
    api = MockApi(json_response(503, {}))
    client = _client(api, sleep)
    deadline = asyncio.get_running_loop().time()

    with pytest.raises(PaymentError) as exc_info:
        await client.request("GET", "/ping", deadline=deadline)

    assert exc_info.value.status_code == 503
    assert api.calls == 1
    assert sleep.delays == []


async def test_cancellation_during_backoff_propagates():
    async def cancelled_sleep(delay: float) -> None:
        raise asyncio.CancelledError()

    breaker = CircuitBreaker("api", failure_threshold=5, clock=FakeClock())
    api = MockApi(json_response(503, {}))
    client = TokenClient(
        "https://api.test",
        transport=api.transport,
        sleep=cancelled_sleep,
        circuit_breaker=breaker,
    )

    with pytest.raises(asyncio.CancelledError):
        await client.request("GET", "/ping")
    assert api.calls == 1


async def test_cancelled_request_leaves_trial_slot_with_its_holder(sleep):
    clock = FakeClock()
    breaker = CircuitBreaker("api", failure_threshold=1, reset_window=60, clock=clock)

    def handler(request: httpx.Request) -> httpx.Response:
        # Another request trips the breaker and, once the window passes, takes the trial slot.
        breaker.record_failure()
        clock.advance(60)
        assert breaker.before_request() is True
        raise asyncio.CancelledError()

    client = TokenClient(
        "https://api.test",
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        circuit_breaker=breaker,
    )

    with pytest.raises(asyncio.CancelledError):
        await client.request("GET", "/ping")

    assert breaker.state is CircuitState.HALF_OPEN
    with pytest.raises(CircuitOpenError):
        breaker.before_request()


async def test_bearer_client_sends_token(sleep):
    api = MockApi(json_response(200, {}))
    client = BearerTokenApiClient("https://orders.test", "s3cret", transport=api.transport)

    await client.request("GET", "/api/orders/1")

    assert api.requests[0].headers["Authorization"] == "Bearer s3cret"
