from __future__ import annotations

import json
from urllib.parse import parse_qs, urlparse

import pytest

pytestmark = pytest.mark.anyio

JSON = {"Accept": "application/json"}


@pytest.mark.parametrize(
    "body",
    [
        {"amount": 10},
        {"email": "trader@example.com"},
        {"email": "trader@example.com", "amount": 0},
        {},
    ],
)
async def test_initialize_requires_email_and_amount(client, paystack_transport, mpesa_transport, body):
    response = await client.post("/payment/initialize", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["status"] is False
    assert "required" in payload["message"]
    assert paystack_transport.requests == []
    assert mpesa_transport.requests == []


async def test_initialize_card_payment_scales_amount_to_minor_units(client, paystack_transport):
    response = await client.post(
        "/payment/initialize",
        json={
            "email": "trader@example.com",
            "amount": 10,
            "metadata": {"tier": "gold", "subscriptionType": "monthly", "userId": "u1", "botName": "alpha"},
        },
    )

    assert response.status_code == 200
    assert response.json()["data"]["authorization_url"] == "https://checkout.paystack.com/abc123"

    [request] = paystack_transport.calls_to("/transaction/initialize")
    sent = json.loads(request.content)
    assert sent["amount"] == 1000
    assert sent["email"] == "trader@example.com"
    assert sent["currency"] == "KES"
    assert sent["channels"] == ["card"]
    assert sent["callback_url"] == "http://localhost:3000/payment/verify"
    assert sent["metadata"]["tier"] == "gold"
    assert sent["metadata"]["userId"] == "u1"
    fields = {f["variable_name"]: f["value"] for f in sent["metadata"]["custom_fields"]}
    assert fields == {"bot_tier": "gold", "subscription_type": "monthly", "user_id": "u1", "bot_name": "alpha"}


async def test_initialize_forwards_numeric_metadata_unchanged(client, paystack_transport):
    response = await client.post(
        "/payment/initialize",
        json={"email": "trader@example.com", "amount": 10, "metadata": {"userId": 42, "tier": 2}},
    )

    assert response.status_code == 200
    [request] = paystack_transport.calls_to("/transaction/initialize")
    sent = json.loads(request.content)
    assert sent["metadata"]["userId"] == 42
    assert sent["metadata"]["tier"] == 2
    fields = {f["variable_name"]: f["value"] for f in sent["metadata"]["custom_fields"]}
    assert fields["user_id"] == 42
    assert fields["bot_tier"] == 2


async def test_initialize_accepts_numeric_phone_number(client, mpesa_transport):
    response = await client.post("/payment/initialize", json={"phoneNumber": 712345678, "amount": 10})

    assert response.status_code == 200
    [request] = mpesa_transport.calls_to("/mpesa/stkpush/v1/processrequest")
    assert json.loads(request.content)["PhoneNumber"] == "254712345678"


async def test_initialize_keeps_caller_callback_and_extra_metadata(client, paystack_transport):
    await client.post(
        "/payment/initialize",
        json={
            "email": "trader@example.com",
            "amount": 12.5,
            "callback_url": "https://app.example.com/cb",
            "metadata": {"campaign": "launch"},
        },
    )

    sent = json.loads(paystack_transport.calls_to("/transaction/initialize")[0].content)
    assert sent["amount"] == 1250
    assert sent["callback_url"] == "https://app.example.com/cb"
    assert sent["metadata"]["campaign"] == "launch"


async def test_initialize_with_phone_number_starts_stk_push_unscaled(client, paystack_transport, mpesa_transport):
    response = await client.post("/payment/initialize", json={"phoneNumber": "0712345678", "amount": 10})

    assert response.status_code == 200
    assert response.json()["CheckoutRequestID"] == "ws_CO_191220191020363925"
    assert paystack_transport.requests == []
    [push] = mpesa_transport.calls_to("/mpesa/stkpush/v1/processrequest")
    assert json.loads(push.content)["Amount"] == 10


async def test_initialize_upstream_failure_returns_500(client, paystack_transport, monkeypatch):
    from app.services.payments import PaymentGatewayError, PaystackClient

    async def boom(self, payload):
        raise PaymentGatewayError("connection reset by peer")

    monkeypatch.setattr(PaystackClient, "initialize_transaction", boom)

    response = await client.post("/payment/initialize", json={"email": "a@b.c", "amount": 5})

    assert response.status_code == 500
    assert response.json() == {"status": False, "message": "connection reset by peer"}


async def test_verify_twice_within_ttl_calls_upstream_once(client, paystack_transport):
    first = await client.get("/payment/verify/ref_1", headers=JSON)
    second = await client.get("/payment/verify/ref_1", headers=JSON)

    assert first.status_code == second.status_code == 200
    assert first.json()["data"]["success"] is True
    assert first.json()["data"]["cached"] is False
    assert second.json()["data"]["cached"] is True
    assert len(paystack_transport.calls_to("/transaction/verify/ref_1")) == 1


async def test_verify_after_ttl_calls_upstream_again(client, paystack_transport, clock):
    await client.get("/payment/verify/ref_1", headers=JSON)
    clock.advance(301)
    response = await client.get("/payment/verify/ref_1", headers=JSON)

    assert response.json()["data"]["cached"] is False
    assert len(paystack_transport.calls_to("/transaction/verify/ref_1")) == 2


async def test_verify_query_and_path_share_the_cache(client, paystack_transport):
    await client.get("/payment/verify", params={"reference": "ref_2"}, headers=JSON)
    response = await client.get("/payment/verify/ref_2", headers=JSON)

    assert response.json()["data"]["cached"] is True
    assert len(paystack_transport.requests) == 1


async def test_verify_accepts_trxref(client, paystack_transport):
    response = await client.get("/payment/verify", params={"trxref": "ref_3"}, headers=JSON)

    assert response.status_code == 200
    assert response.json()["data"]["reference"] == "ref_3"


async def test_verify_failed_payment(client):
    response = await client.get("/payment/verify/failed_1", headers=JSON)

    body = response.json()
    assert body["status"] is True
    assert body["message"] == "Payment not successful"
    assert body["data"]["success"] is False
    assert body["data"]["status"] == "failed"


async def test_verify_unknown_reference_is_not_cached(client, paystack_transport):
    await client.get("/payment/verify/missing_1", headers=JSON)
    response = await client.get("/payment/verify/missing_1", headers=JSON)

    assert response.json()["data"]["success"] is False
    assert len(paystack_transport.calls_to("/transaction/verify/missing_1")) == 2


async def test_verify_redirects_app_clients_to_deep_link(client):
    response = await client.get("/payment/verify", params={"reference": "ref_4", "trxref": "ref_4"})

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("dfirsttrader://payment/verify?")
    params = parse_qs(urlparse(location).query)
    assert params == {"reference": ["ref_4"], "status": ["success"], "screen": ["trading"]}


async def test_verify_redirects_to_return_url_from_metadata(client):
    response = await client.get("/payment/verify/web_1")

    assert response.status_code == 302
    assert response.headers["location"] == (
        "https://bot.example.com/done?reference=web_1&status=success&screen=trading"
    )


async def test_verify_failure_redirect_carries_error(client, monkeypatch):
    from app.services.payments import PaymentGatewayError, PaystackClient

    async def boom(self, reference):
        raise PaymentGatewayError("socket hang up")

    monkeypatch.setattr(PaystackClient, "verify_transaction", boom)

    response = await client.get("/payment/verify", params={"reference": "ref_5"})

    assert response.status_code == 302
    params = parse_qs(urlparse(response.headers["location"]).query)
    assert params["status"] == ["failed"]
    assert params["error"] == ["socket hang up"]

    json_response = await client.get("/payment/verify/ref_5", headers=JSON)
    assert json_response.status_code == 500
    assert json_response.json()["message"] == "socket hang up"


async def test_verify_without_reference(client):
    response = await client.get("/payment/verify", headers=JSON)

    assert response.status_code == 400
    assert response.json()["message"] == "No reference provided"
