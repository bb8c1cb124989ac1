"""
Payment dependencies for FastAPI routes.

Clients and the verification cache live on `app.state` so every request
shares one cache and one M-Pesa token. Tests swap them out through
`app.dependency_overrides`.
"""

from fastapi import Request

from app.core.config import settings
from app.services.payments import MpesaClient, PaystackClient, VerificationCache


def get_verification_cache(request: Request) -> VerificationCache:
    cache = getattr(request.app.state, "verification_cache", None)
    if cache is None:
        cache = VerificationCache(ttl_seconds=settings.VERIFY_CACHE_TTL_SECONDS)
        request.app.state.verification_cache = cache
    return cache


def get_paystack_client() -> PaystackClient:
    return PaystackClient()


def get_mpesa_client(request: Request) -> MpesaClient:
    client = getattr(request.app.state, "mpesa_client", None)
    if client is None:
        client = MpesaClient()
        request.app.state.mpesa_client = client
    return client
