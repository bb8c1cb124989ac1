"""Paystack payment routes - initialize and verify card payments."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse, Response

from app.api.dependencies.payments import get_mpesa_client, get_paystack_client, get_verification_cache
from app.api.routes.payments.mpesa_payments import initiate_stk_push
from app.api.routes.payments.verification import verification_error_response, verification_response
from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.response import error_response
from app.schemas.payments import InitializeRequest, PaymentMetadata
from app.services.payments import (
    MpesaClient,
    PaymentGatewayError,
    PaystackClient,
    VerificationCache,
    VerificationRecord,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/payment", tags=["payments", "paystack"])


def build_paystack_payload(req: InitializeRequest) -> Dict[str, Any]:
    """Shape an initialize request into Paystack's body.

    Paystack expects minor units, so the amount is multiplied by 100.
    """
    metadata = req.metadata or PaymentMetadata()
    custom_fields = [
        {"display_name": "Bot Tier", "variable_name": "bot_tier", "value": metadata.tier},
        {"display_name": "Subscription Type", "variable_name": "subscription_type", "value": metadata.subscriptionType},
        {"display_name": "User ID", "variable_name": "user_id", "value": metadata.userId},
    ]
    if metadata.botName:
        custom_fields.append({"display_name": "Bot Name", "variable_name": "bot_name", "value": metadata.botName})

    return {
        "email": req.email,
        "amount": int(round(req.amount * 100)),
        "currency": req.currency or settings.PAYSTACK_CURRENCY,
        "channels": list(settings.PAYSTACK_CHANNELS),
        "callback_url": req.callback_url or f"{settings.server_url}/payment/verify",
        "metadata": {
            "custom_fields": custom_fields,
            **metadata.model_dump(exclude_none=True),
        },
    }


@router.post("/initialize")
async def initialize_payment(
    req: InitializeRequest,
    paystack: PaystackClient = Depends(get_paystack_client),
    mpesa: MpesaClient = Depends(get_mpesa_client),
):
    """Initialize a payment.

    Card payments (email given) go to Paystack and return its raw response.
    Requests with only a phone number start an M-Pesa STK push instead.
    """
    if not req.amount or not (req.email or req.phoneNumber):
        return error_response("Email or phone number and amount are required", status_code=400)

    try:
        if not req.email:
            return await initiate_stk_push(
                mpesa,
                phone=str(req.phoneNumber),
                amount=req.amount,
                metadata=req.metadata,
            )

        payload = build_paystack_payload(req)
        logger.info(f"Initializing payment: callback_url={payload['callback_url']}, metadata={payload['metadata']}")
        data = await paystack.initialize_transaction(payload)
        return JSONResponse(content=data)
    except PaymentGatewayError as e:
        logger.error(f"Payment initialization error: {e}")
        return error_response(str(e) or "Failed to initialize payment", status_code=500)
    except Exception as e:
        logger.exception(f"Payment initialization error: {e}")
        return error_response(str(e) or "Failed to initialize payment", status_code=500)


async def verify_reference(
    request: Request,
    reference: str | None,
    cache: VerificationCache,
    paystack: PaystackClient,
) -> Response:
    if not reference:
        return verification_error_response(request, None, "No reference provided", status_code=400)

    cached = cache.get("paystack", reference)
    if cached is not None:
        logger.info(f"Verification cache hit: reference={reference}")
        return verification_response(request, cached, cached=True)

    logger.info(f"Verifying payment reference: {reference}")
    try:
        response = await paystack.verify_transaction(reference)
    except PaymentGatewayError as e:
        logger.error(f"Payment verification error: {e}")
        return verification_error_response(request, reference, str(e) or "Verification failed")
    except Exception as e:
        logger.exception(f"Payment verification error: {e}")
        return verification_error_response(request, reference, str(e) or "Verification failed")

    data = response.get("data") if isinstance(response.get("data"), dict) else {}
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    record = VerificationRecord(
        reference=reference,
        provider="paystack",
        success=data.get("status") == "success",
        status=data.get("status"),
        data=response,
        metadata=metadata,
    )
    # status=false means Paystack could not look the reference up; retry next time
    if response.get("status"):
        cache.set(record)
    return verification_response(request, record, cached=False)


@router.get("/verify/{reference}")
async def verify_payment_by_path(
    reference: str,
    request: Request,
    cache: VerificationCache = Depends(get_verification_cache),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """Verify a Paystack transaction by path reference."""
    return await verify_reference(request, reference, cache, paystack)


@router.get("/verify")
async def verify_payment(
    request: Request,
    reference: str | None = None,
    trxref: str | None = None,
    cache: VerificationCache = Depends(get_verification_cache),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """Paystack callback endpoint.

    Paystack sends `reference` and often `trxref` as query params. We'll use whichever is present.
    """
    return await verify_reference(request, reference or trxref, cache, paystack)
