"""Provider webhook payloads: signature checks and one-time decoding.

Paystack events are decoded into a closed set of known event types with an
explicit `unknown` fallback. M-Pesa STK callbacks are flattened into a
single model so handlers never walk the raw `Body.stkCallback` envelope.
"""

from __future__ import annotations

import enum
import hashlib
import hmac
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.core.logging_config import get_logger
from app.services.payments.verification_cache import VerificationCache, VerificationRecord

logger = get_logger(__name__)


class PaystackEventType(str, enum.Enum):
    charge_success = "charge.success"
    transfer_success = "transfer.success"
    unknown = "unknown"


class PaystackWebhookEvent(BaseModel):
    kind: PaystackEventType
    name: Optional[str] = None  # event string as sent, kept for unknown events
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> Optional[str]:
        return self.data.get("reference")


class MpesaCallback(BaseModel):
    merchant_request_id: Optional[str] = None
    checkout_request_id: str
    result_code: int
    result_desc: Optional[str] = None
    items: Dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.result_code == 0


def compute_paystack_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def verify_paystack_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of the x-paystack-signature header."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_paystack_signature(secret, body), signature)


def parse_paystack_event(payload: Any) -> PaystackWebhookEvent:
    """Decode a Paystack webhook body.

    Raises:
        ValueError: If the body is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ValueError("Webhook payload must be a JSON object")
    name = payload.get("event")
    try:
        kind = PaystackEventType(name)
    except (TypeError, ValueError):
        kind = PaystackEventType.unknown
    data = payload.get("data")
    return PaystackWebhookEvent(
        kind=kind,
        name=name if isinstance(name, str) else None,
        data=data if isinstance(data, dict) else {},
    )


def handle_paystack_event(event: PaystackWebhookEvent) -> None:
    """Log known Paystack events; no state is changed."""
    if event.kind is PaystackEventType.charge_success:
        logger.info(
            f"Payment successful: reference={event.reference}, "
            f"amount={event.data.get('amount')}, channel={event.data.get('channel')}"
        )
    elif event.kind is PaystackEventType.transfer_success:
        logger.info(f"Transfer successful: reference={event.reference}, amount={event.data.get('amount')}")
    else:
        logger.info(f"Unhandled Paystack event: {event.name}")


def parse_mpesa_callback(payload: Any) -> MpesaCallback:
    """Decode Daraja's STK callback envelope.

    Raises:
        ValueError: If the body is not an STK callback
    """
    if not isinstance(payload, dict):
        raise ValueError("Callback payload must be a JSON object")
    stk = (payload.get("Body") or {}).get("stkCallback")
    if not isinstance(stk, dict) or not stk.get("CheckoutRequestID"):
        raise ValueError("Callback payload is missing Body.stkCallback.CheckoutRequestID")

    items: Dict[str, Any] = {}
    for item in (stk.get("CallbackMetadata") or {}).get("Item") or []:
        if isinstance(item, dict) and item.get("Name"):
            items[item["Name"]] = item.get("Value")

    try:
        result_code = int(stk.get("ResultCode"))
    except (TypeError, ValueError) as e:
        raise ValueError("Callback payload has an invalid ResultCode") from e

    return MpesaCallback(
        merchant_request_id=stk.get("MerchantRequestID"),
        checkout_request_id=stk["CheckoutRequestID"],
        result_code=result_code,
        result_desc=stk.get("ResultDesc"),
        items=items,
    )


def handle_mpesa_callback(callback: MpesaCallback, cache: VerificationCache) -> VerificationRecord:
    """Record the callback outcome so a later verify is answered locally."""
    if callback.success:
        logger.info(
            f"M-Pesa payment successful: checkout_request_id={callback.checkout_request_id}, "
            f"receipt={callback.items.get('MpesaReceiptNumber')}, amount={callback.items.get('Amount')}"
        )
    else:
        logger.info(
            f"M-Pesa payment failed: checkout_request_id={callback.checkout_request_id}, "
            f"result_code={callback.result_code}, desc={callback.result_desc}"
        )

    record = VerificationRecord(
        reference=callback.checkout_request_id,
        provider="mpesa",
        success=callback.success,
        status="success" if callback.success else "failed",
        data=callback.model_dump(),
    )
    cache.set(record)
    return record
