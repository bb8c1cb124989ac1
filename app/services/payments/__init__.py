"""Payment services for Paystack and M-Pesa integrations."""

from .errors import PaymentGatewayError
from .paystack_client import PaystackClient
from .mpesa_client import MpesaClient
from .verification_cache import VerificationCache, VerificationRecord

__all__ = [
    "PaymentGatewayError",
    "PaystackClient",
    "MpesaClient",
    "VerificationCache",
    "VerificationRecord",
]
