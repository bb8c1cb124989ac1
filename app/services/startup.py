"""Startup diagnostics logged when the server boots."""

from __future__ import annotations

from typing import Optional

import httpx

from app.core.logging_config import get_logger

logger = get_logger("startup")

IPIFY_URL = "https://api.ipify.org?format=json"

# Outbound IPs of the hosting platform that Paystack must allow
RENDER_EGRESS_IPS = (
    "35.196.132.4",
    "35.196.132.8",
    "35.196.132.12",
    "35.196.132.16",
)


async def fetch_public_ip(transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[str]:
    try:
        async with httpx.AsyncClient(transport=transport, timeout=5.0) as client:
            resp = await client.get(IPIFY_URL)
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to get server IP: {e}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("ip"), str):
        logger.error(f"Failed to get server IP: unexpected response {data!r}")
        return None
    return data["ip"]


async def log_whitelist_info(transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[str]:
    """Log the IPs to add to the Paystack IP whitelist."""
    ip = await fetch_public_ip(transport)
    lines = [
        "Paystack IP Whitelist Configuration:",
        "-----------------------------------",
        f"1. Add your current server IP: {ip or 'unknown'}",
        "2. Add these Render.com IPs:",
        *(f"   - {addr}" for addr in RENDER_EGRESS_IPS),
        "-----------------------------------",
    ]
    logger.info("\n" + "\n".join(lines))
    return ip
