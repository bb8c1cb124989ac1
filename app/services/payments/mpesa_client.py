"""M-Pesa (Safaricom Daraja) STK push client.

Flows used here:
    GET  /oauth/v1/generate?grant_type=client_credentials   (Basic auth)
    POST /mpesa/stkpush/v1/processrequest                   (prompt the payer)
    POST /mpesa/stkpushquery/v1/query                        (poll by CheckoutRequestID)

Each call is independent; the caller decides when to poll.
"""

from __future__ import annotations

import base64
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx

from app.core.config import settings
from app.core.logging_config import get_logger
from app.services.payments.errors import PaymentGatewayError

logger = get_logger(__name__)

BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}

# Daraja timestamps are expected in Kenyan local time (no DST)
EAT = timezone(timedelta(hours=3), name="EAT")

# Refresh the OAuth token this many seconds before Daraja says it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60

# How long a CheckoutRequestID issued by stk_push is accepted in callbacks
ISSUED_REQUEST_TTL_SECONDS = 3600


def normalize_phone(phone: str) -> str:
    """Return a Kenyan MSISDN as 2547XXXXXXXX (or 2541XXXXXXXX)."""
    digits = "".join(ch for ch in str(phone) if ch.isdigit())
    if digits.startswith("254"):
        return digits
    if digits.startswith("0"):
        return "254" + digits[1:]
    if len(digits) == 9 and digits[0] in "71":
        return "254" + digits
    return digits


def mpesa_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(EAT)
    return now.astimezone(EAT).strftime("%Y%m%d%H%M%S")


class MpesaClient:
    """Thin wrapper around the Daraja STK push endpoints."""

    def __init__(
        self,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        shortcode: Optional[str] = None,
        passkey: Optional[str] = None,
        environment: Optional[str] = None,
        callback_url: Optional[str] = None,
        transaction_type: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.consumer_key = consumer_key or settings.MPESA_CONSUMER_KEY
        self.consumer_secret = consumer_secret or settings.MPESA_CONSUMER_SECRET
        self.shortcode = str(shortcode or settings.MPESA_SHORTCODE or "")
        self.passkey = passkey or settings.MPESA_PASSKEY
        self.environment = (environment or settings.MPESA_ENVIRONMENT).lower()
        self.callback_url = callback_url or settings.MPESA_CALLBACK_URL or f"{settings.server_url}/mpesa/callback"
        self.transaction_type = transaction_type or settings.MPESA_TRANSACTION_TYPE
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT_SECONDS

        if self.environment not in BASE_URLS:
            raise ValueError(f"M-Pesa environment must be 'sandbox' or 'production', got '{self.environment}'")
        self.base_url = BASE_URLS[self.environment]

        self._transport = transport
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._issued: Dict[str, float] = {}

    @property
    def configured(self) -> bool:
        return all((self.consumer_key, self.consumer_secret, self.shortcode, self.passkey))

    def _remember_issued(self, checkout_request_id: str) -> None:
        now = self._clock()
        self._issued = {k: exp for k, exp in self._issued.items() if exp > now}
        self._issued[checkout_request_id] = now + ISSUED_REQUEST_TTL_SECONDS

    def issued(self, checkout_request_id: str) -> bool:
        """Whether this client started the STK push with that CheckoutRequestID."""
        expires_at = self._issued.get(checkout_request_id)
        return expires_at is not None and expires_at > self._clock()

    def _ensure_configured(self) -> None:
        if not self.configured:
            raise PaymentGatewayError("M-Pesa is not configured", provider="mpesa")

    def build_password(self, timestamp: str) -> str:
        """base64(shortcode + passkey + timestamp) as Daraja expects."""
        raw = f"{self.shortcode}{self.passkey}{timestamp}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    async def get_access_token(self) -> str:
        """Fetch (or reuse) the short-lived OAuth token."""
        self._ensure_configured()
        if self._access_token and self._clock() < self._token_expiry:
            return self._access_token

        url = f"{self.base_url}/oauth/v1/generate"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(
                    url,
                    params={"grant_type": "client_credentials"},
                    auth=(self.consumer_key, self.consumer_secret),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"M-Pesa token request failed: {e.response.status_code} {e.response.text[:200]}")
            raise PaymentGatewayError("M-Pesa authentication failed", provider="mpesa") from e
        except httpx.HTTPError as e:
            logger.error(f"M-Pesa token request error: {e}")
            raise PaymentGatewayError(str(e) or "M-Pesa authentication failed", provider="mpesa") from e
        except ValueError as e:
            raise PaymentGatewayError("Invalid token response from M-Pesa", provider="mpesa") from e

        token = data.get("access_token")
        if not token:
            raise PaymentGatewayError("M-Pesa token response missing access_token", provider="mpesa")

        expires_in = int(data.get("expires_in") or 3599)
        self._access_token = token
        self._token_expiry = self._clock() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.info(f"M-Pesa access token obtained (expires_in={expires_in}s)")
        return token

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        token = await self.get_access_token()
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"M-Pesa POST {path} transport error: {e}")
            raise PaymentGatewayError(str(e) or "M-Pesa request failed", provider="mpesa") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"M-Pesa POST {path} returned non-JSON body ({response.status_code}): {response.text[:200]}")
            raise PaymentGatewayError(
                f"Invalid response from M-Pesa (HTTP {response.status_code})",
                provider="mpesa",
            ) from e

        if not isinstance(data, dict):
            raise PaymentGatewayError("Invalid response from M-Pesa: expected a JSON object", provider="mpesa")
        if response.is_error:
            # Daraja reports "still processing" on stk query as a 500 with errorCode
            logger.warning(f"M-Pesa POST {path} returned {response.status_code}: {data.get('errorMessage')}")
        return data

    async def stk_push(
        self,
        phone: str,
        amount: float,
        account_reference: Optional[str] = None,
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send an STK push prompt to the payer's handset.

        The amount is sent in whole shillings, unscaled.
        """
        self._ensure_configured()
        timestamp = mpesa_timestamp()
        msisdn = normalize_phone(phone)
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": self.transaction_type,
            "Amount": int(round(float(amount))),
            "PartyA": msisdn,
            "PartyB": self.shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": callback_url or self.callback_url,
            "AccountReference": str(account_reference or self.shortcode)[:12],
            "TransactionDesc": str(description or "Payment")[:13],
        }
        logger.info(f"Initiating M-Pesa STK push: phone={msisdn}, amount={payload['Amount']}")
        data = await self._post("/mpesa/stkpush/v1/processrequest", payload)
        if data.get("CheckoutRequestID"):
            self._remember_issued(data["CheckoutRequestID"])
            logger.info(f"M-Pesa STK push accepted: checkout_request_id={data['CheckoutRequestID']}")
        return data

    async def stk_query(self, checkout_request_id: str) -> Dict[str, Any]:
        """Query the status of an STK push by CheckoutRequestID."""
        self._ensure_configured()
        timestamp = mpesa_timestamp()
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        logger.info(f"Querying M-Pesa STK status: checkout_request_id={checkout_request_id}")
        data = await self._post("/mpesa/stkpushquery/v1/query", payload)
        logger.info(
            f"M-Pesa STK status: checkout_request_id={checkout_request_id}, "
            f"result_code={data.get('ResultCode')}, desc={data.get('ResultDesc')}"
        )
        return data
