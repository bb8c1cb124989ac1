from __future__ import annotations

import json
import os
from typing import AsyncGenerator, Callable

os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
os.environ.setdefault("MPESA_CONSUMER_KEY", "consumer-key")
os.environ.setdefault("MPESA_CONSUMER_SECRET", "consumer-secret")
os.environ.setdefault("MPESA_SHORTCODE", "174379")
os.environ.setdefault("MPESA_PASSKEY", "passkey")
os.environ.setdefault("LOG_WHITELIST_INFO", "false")
os.environ.setdefault("LOG_FILE", os.devnull)

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.api.dependencies.payments import get_mpesa_client, get_paystack_client, get_verification_cache
from app.api.routes.router import router as api_router
from app.services.payments import MpesaClient, PaystackClient, VerificationCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


def paystack_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/transaction/initialize":
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": "https://checkout.paystack.com/abc123",
                    "access_code": "abc123",
                    "reference": "ref_123",
                },
                "echo": body,
            },
        )
    if path.startswith("/transaction/verify/"):
        reference = path.rsplit("/", 1)[-1]
        if reference.startswith("missing"):
            return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
        status = "failed" if reference.startswith("failed") else "success"
        metadata = {"userId": "u1"}
        if reference.startswith("web"):
            metadata["returnUrl"] = "https://bot.example.com/done"
        return httpx.Response(
            200,
            json={
                "status": True,
                "message": "Verification successful",
                "data": {"reference": reference, "status": status, "amount": 1000, "metadata": metadata},
            },
        )
    return httpx.Response(404, json={"status": False, "message": "Not found"})


def mpesa_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/oauth/v1/generate":
        return httpx.Response(200, json={"access_token": "token-1", "expires_in": "3599"})
    if path == "/mpesa/stkpush/v1/processrequest":
        return httpx.Response(
            200,
            json={
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": "ws_CO_191220191020363925",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            },
        )
    if path == "/mpesa/stkpushquery/v1/query":
        checkout_id = json.loads(request.content)["CheckoutRequestID"]
        if checkout_id.startswith("pending"):
            return httpx.Response(
                500,
                json={"requestId": "1", "errorCode": "500.001.1001", "errorMessage": "The transaction is being processed"},
            )
        return httpx.Response(
            200,
            json={
                "ResponseCode": "0",
                "ResponseDescription": "The service request has been accepted successsfully",
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": checkout_id,
                "ResultCode": "1032" if checkout_id.startswith("cancelled") else "0",
                "ResultDesc": "Request cancelled by user" if checkout_id.startswith("cancelled") else "The service request is processed successfully.",
            },
        )
    return httpx.Response(404, json={"errorMessage": "Not found"})


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure pytest-anyio uses asyncio for all async tests."""
    return "asyncio"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> VerificationCache:
    return VerificationCache(ttl_seconds=300, clock=clock)


@pytest.fixture()
def paystack_transport() -> RecordingTransport:
    return RecordingTransport(paystack_handler)


@pytest.fixture()
def mpesa_transport() -> RecordingTransport:
    return RecordingTransport(mpesa_handler)


@pytest.fixture()
def paystack_client(paystack_transport: RecordingTransport) -> PaystackClient:
    return PaystackClient(secret_key="sk_test_secret", transport=paystack_transport)


@pytest.fixture()
def mpesa_client(mpesa_transport: RecordingTransport, clock: FakeClock) -> MpesaClient:
    return MpesaClient(
        consumer_key="consumer-key",
        consumer_secret="consumer-secret",
        shortcode="174379",
        passkey="passkey",
        environment="sandbox",
        callback_url="https://payments.example.com/mpesa/callback",
        transport=mpesa_transport,
        clock=clock,
    )


@pytest.fixture()
def test_app() -> FastAPI:
    app = FastAPI()
    app.include_router(api_router)
    return app


@pytest_asyncio.fixture()
async def client(
    test_app: FastAPI,
    cache: VerificationCache,
    paystack_client: PaystackClient,
    mpesa_client: MpesaClient,
) -> AsyncGenerator[AsyncClient, None]:
    test_app.dependency_overrides[get_verification_cache] = lambda: cache
    test_app.dependency_overrides[get_paystack_client] = lambda: paystack_client
    test_app.dependency_overrides[get_mpesa_client] = lambda: mpesa_client

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    test_app.dependency_overrides.clear()
