"""Paystack API client - Clean wrapper for Paystack operations."""

from __future__ import annotations

from typing import Optional, Dict, Any
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.logging_config import get_logger
from app.services.payments.errors import PaymentGatewayError

logger = get_logger(__name__)


class PaystackClient:
    """Clean wrapper for Paystack API calls.

    Responses are returned as Paystack sent them, including `status: false`
    bodies that arrive with 4xx codes. Only transport failures and bodies
    that are not JSON raise.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Paystack client."""
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        if not self.secret_key:
            raise RuntimeError("PAYSTACK_SECRET_KEY not configured")
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Paystack {method} {path} transport error: {e}")
            raise PaymentGatewayError(str(e) or "Paystack request failed", provider="paystack") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Paystack {method} {path} returned non-JSON body ({response.status_code}): {response.text[:200]}")
            raise PaymentGatewayError(
                f"Invalid response from Paystack (HTTP {response.status_code})",
                provider="paystack",
            ) from e

        if not isinstance(data, dict):
            raise PaymentGatewayError("Invalid response from Paystack: expected a JSON object", provider="paystack")
        if response.is_error:
            logger.warning(f"Paystack {method} {path} returned {response.status_code}: {data.get('message')}")
        return data

    async def initialize_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Initialize a Paystack transaction.

        Args:
            payload: Paystack initialize body; `amount` must already be in minor units

        Returns:
            Paystack's raw JSON response

        Raises:
            PaymentGatewayError: If the call could not be completed
        """
        logger.info(
            f"Initializing Paystack transaction: email={payload.get('email')}, "
            f"amount={payload.get('amount')}, currency={payload.get('currency')}"
        )
        data = await self._request("POST", "/transaction/initialize", payload)
        if data.get("status"):
            logger.info(f"Paystack transaction initialized: reference={(data.get('data') or {}).get('reference')}")
        return data

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Verify a Paystack transaction by reference.

        Args:
            reference: Transaction reference

        Returns:
            Paystack's raw JSON response
        """
        logger.info(f"Verifying Paystack transaction: reference={reference}")
        data = await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        result = data.get("data") or {}
        if isinstance(result, dict):
            logger.info(f"Paystack transaction verified: reference={reference}, status={result.get('status')}")
        return data
