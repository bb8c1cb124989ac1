"""Payment routes package - Paystack and M-Pesa integration."""

from .paystack_payments import router as paystack_payments_router
from .mpesa_payments import router as mpesa_payments_router
from .paystack_webhooks import router as paystack_webhooks_router
from .mpesa_webhooks import router as mpesa_webhooks_router

__all__ = [
    "paystack_payments_router",
    "mpesa_payments_router",
    "paystack_webhooks_router",
    "mpesa_webhooks_router",
]
