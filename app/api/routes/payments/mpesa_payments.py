"""M-Pesa payment routes - STK push initiate and status verify."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from app.api.dependencies.payments import get_mpesa_client, get_verification_cache
from app.api.routes.payments.verification import verification_error_response, verification_response
from app.core.logging_config import get_logger
from app.core.response import error_response
from app.schemas.payments import MpesaInitiateRequest, PaymentMetadata
from app.services.payments import MpesaClient, PaymentGatewayError, VerificationCache, VerificationRecord

logger = get_logger(__name__)
router = APIRouter(prefix="/payment/mpesa", tags=["payments", "mpesa"])


async def initiate_stk_push(
    mpesa: MpesaClient,
    *,
    phone: str,
    amount: float,
    account_reference: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[PaymentMetadata] = None,
) -> JSONResponse:
    """Start an STK push and relay Daraja's response as-is."""
    if metadata is not None:
        fallback_reference = metadata.userId or metadata.botName
        fallback_description = metadata.subscriptionType or metadata.tier
        account_reference = account_reference or (str(fallback_reference) if fallback_reference else None)
        description = description or (str(fallback_description) if fallback_description else None)
    data = await mpesa.stk_push(
        phone,
        amount,
        account_reference=account_reference,
        description=description,
    )
    return JSONResponse(content=data)


@router.post("/initiate")
async def initiate_mpesa_payment(
    req: MpesaInitiateRequest,
    mpesa: MpesaClient = Depends(get_mpesa_client),
):
    """Prompt the payer's handset for an M-Pesa payment (amount in KES, unscaled)."""
    if not req.phoneNumber or not req.amount:
        return error_response("Phone number and amount are required", status_code=400)

    try:
        return await initiate_stk_push(
            mpesa,
            phone=str(req.phoneNumber),
            amount=req.amount,
            account_reference=req.accountReference,
            description=req.description,
            metadata=req.metadata,
        )
    except PaymentGatewayError as e:
        logger.error(f"M-Pesa initiation error: {e}")
        return error_response(str(e) or "Failed to initiate M-Pesa payment", status_code=500)
    except Exception as e:
        logger.exception(f"M-Pesa initiation error: {e}")
        return error_response(str(e) or "Failed to initiate M-Pesa payment", status_code=500)


@router.get("/verify/{checkoutRequestId}")
async def verify_mpesa_payment(
    checkoutRequestId: str,
    request: Request,
    cache: VerificationCache = Depends(get_verification_cache),
    mpesa: MpesaClient = Depends(get_mpesa_client),
):
    """Check an STK push by CheckoutRequestID, answering from the cache when possible."""
    cached = cache.get("mpesa", checkoutRequestId)
    if cached is not None:
        logger.info(f"Verification cache hit: checkout_request_id={checkoutRequestId}")
        return verification_response(request, cached, cached=True)

    try:
        response = await mpesa.stk_query(checkoutRequestId)
    except PaymentGatewayError as e:
        logger.error(f"M-Pesa verification error: {e}")
        return verification_error_response(request, checkoutRequestId, str(e) or "Verification failed")
    except Exception as e:
        logger.exception(f"M-Pesa verification error: {e}")
        return verification_error_response(request, checkoutRequestId, str(e) or "Verification failed")

    result_code = response.get("ResultCode")
    success = str(result_code) == "0"
    record = VerificationRecord(
        reference=checkoutRequestId,
        provider="mpesa",
        success=success,
        status="success" if success else ("pending" if result_code is None else "failed"),
        data=response,
    )
    # No ResultCode yet means the payer has not answered the prompt
    if result_code is not None:
        cache.set(record)
    return verification_response(request, record, cached=False)
