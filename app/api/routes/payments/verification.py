"""Shared response handling for the Paystack and M-Pesa verify endpoints.

JSON clients get the verification record; anything else (the mobile app's
in-app browser) is redirected to the app's deep link.
"""

from __future__ import annotations

from fastapi import Request
from starlette.responses import RedirectResponse, Response

from app.core.logging_config import get_logger
from app.core.response import error_response, verified_response
from app.schemas.payments import VerificationOut
from app.services.payments.redirects import build_verify_redirect_url, return_url_from_metadata
from app.services.payments.verification_cache import VerificationRecord

logger = get_logger(__name__)


def wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "").lower()


def verification_response(request: Request, record: VerificationRecord, cached: bool) -> Response:
    if wants_json(request):
        out = VerificationOut(**record.to_dict(), cached=cached)
        message = "Payment verified" if record.success else "Payment not successful"
        return verified_response(message, data=out.model_dump())

    redirect_url = build_verify_redirect_url(
        record.reference,
        record.success,
        return_url=return_url_from_metadata(record.metadata),
    )
    logger.info(f"Redirecting to app: {redirect_url}")
    return RedirectResponse(url=redirect_url, status_code=302)


def verification_error_response(
    request: Request,
    reference: str | None,
    message: str,
    status_code: int = 500,
) -> Response:
    if wants_json(request):
        return error_response(message, status_code=status_code)

    redirect_url = build_verify_redirect_url(reference, False, error=message)
    logger.info(f"Redirecting to app after failure: {redirect_url}")
    return RedirectResponse(url=redirect_url, status_code=302)
