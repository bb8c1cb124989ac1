"""Paystack webhook handler - Validate and log provider events."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from starlette.responses import Response

from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.response import success_response
from app.services.payments.webhook_events import (
    handle_paystack_event,
    parse_paystack_event,
    verify_paystack_signature,
)

logger = get_logger(__name__)
router = APIRouter(tags=["webhooks"])


@router.post("/webhook")
async def paystack_webhook(request: Request):
    """Handle Paystack webhook events.

    Supported events:
    - charge.success: Logged
    - transfer.success: Logged
    Anything else is logged as unhandled and still acknowledged.
    """
    payload = await request.body()
    sig_header = request.headers.get("x-paystack-signature")

    if not sig_header:
        logger.warning("Paystack webhook: Missing signature header")
        return Response(status_code=400)

    if not verify_paystack_signature(settings.PAYSTACK_SECRET_KEY, payload, sig_header):
        logger.error("Paystack webhook: Invalid signature")
        return Response(status_code=400)

    try:
        event = parse_paystack_event(json.loads(payload))
    except ValueError:
        logger.error("Paystack webhook: Invalid JSON")
        return Response(status_code=400)

    logger.info(f"Paystack webhook received: {event.name}")

    try:
        handle_paystack_event(event)
    except Exception as e:
        logger.error(f"Paystack webhook processing failed: {e}", exc_info=True)
        return Response(status_code=500)

    return success_response(message="Webhook processed", data={"event": event.name})
