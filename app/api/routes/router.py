# Main Router - app/api/routes/router.py
from fastapi import APIRouter
from app.api.routes.health.health import router as health_router
from app.api.routes.payments import (
    paystack_payments_router,
    mpesa_payments_router,
    paystack_webhooks_router,
    mpesa_webhooks_router,
)

router = APIRouter()

router.include_router(health_router)

# Payment routes (called by the mobile app and its browser redirects)
router.include_router(paystack_payments_router)
router.include_router(mpesa_payments_router)

# Webhook routes (called by the providers, authenticated per provider)
router.include_router(paystack_webhooks_router)
router.include_router(mpesa_webhooks_router)
