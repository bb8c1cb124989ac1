"""URL helpers for sending payers back into the mobile app."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

from app.core.config import settings


def app_verify_url() -> str:
    return f"{settings.APP_URL_SCHEME}://payment/verify"


def return_url_from_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    """Caller-supplied return URL stored in the transaction metadata, if any."""
    if not isinstance(metadata, dict):
        return None
    url = metadata.get("returnUrl") or metadata.get("return_url")
    return url if isinstance(url, str) and url.strip() else None


def build_verify_redirect_url(
    reference: Optional[str],
    success: bool,
    *,
    return_url: Optional[str] = None,
    error: Optional[str] = None,
    screen: str = "trading",
) -> str:
    """Build the redirect target for a verify callback.

    Example: dfirsttrader://payment/verify?reference=abc&status=success&screen=trading
    """
    params: Dict[str, str] = {
        "reference": reference or "",
        "status": "success" if success else "failed",
    }
    if error:
        params["error"] = error
    params["screen"] = screen

    base = return_url or app_verify_url()
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(params)}"
