"""M-Pesa callback handler - Record STK push outcomes sent by Daraja."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.dependencies.payments import get_mpesa_client, get_verification_cache
from app.core.logging_config import get_logger
from app.core.response import error_response
from app.services.payments import MpesaClient, VerificationCache
from app.services.payments.webhook_events import handle_mpesa_callback, parse_mpesa_callback

logger = get_logger(__name__)
router = APIRouter(prefix="/mpesa", tags=["webhooks"])

ACCEPTED = {"ResultCode": 0, "ResultDesc": "Accepted"}


async def _receive_stk_callback(request: Request, cache: VerificationCache, mpesa: MpesaClient):
    body = await request.body()
    try:
        callback = parse_mpesa_callback(json.loads(body))
    except ValueError as e:
        logger.warning(f"M-Pesa callback rejected: {e}")
        return error_response(str(e), status_code=400)

    logger.info(
        f"M-Pesa callback received: checkout_request_id={callback.checkout_request_id}, "
        f"result_code={callback.result_code}"
    )
    # Callbacks are unauthenticated; only trust ones for prompts we started
    if not mpesa.issued(callback.checkout_request_id):
        logger.warning(
            f"M-Pesa callback ignored: unknown checkout_request_id={callback.checkout_request_id}"
        )
        return JSONResponse(content=ACCEPTED)

    handle_mpesa_callback(callback, cache)
    # Daraja only needs an acknowledgement
    return JSONResponse(content=ACCEPTED)


@router.post("/callback")
async def mpesa_callback(
    request: Request,
    cache: VerificationCache = Depends(get_verification_cache),
    mpesa: MpesaClient = Depends(get_mpesa_client),
):
    """STK push result callback (the CallBackURL given to Daraja)."""
    return await _receive_stk_callback(request, cache, mpesa)


@router.post("/webhook")
async def mpesa_webhook(
    request: Request,
    cache: VerificationCache = Depends(get_verification_cache),
    mpesa: MpesaClient = Depends(get_mpesa_client),
):
    """Alternate callback path kept for apps configured against it."""
    return await _receive_stk_callback(request, cache, mpesa)
