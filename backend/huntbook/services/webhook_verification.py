"""
PayPal webhook signature verification.

Rather than fetching the signing certificate and checking the RSA signature
locally, the transmission headers are posted back to PayPal's
verify-webhook-signature API together with the configured webhook id.

Returns one of VERIFIED / FAILED / SKIPPED. SKIPPED means verification could
not be attempted (no webhook id or credentials configured, or the
transmission headers are missing); callers that enforce signatures treat it
like FAILED.
"""

from typing import Any, Mapping

import httpx

from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger

logger = get_logger(__name__)

VERIFIED = "verified"
FAILED = "failed"
SKIPPED = "skipped"

TRANSMISSION_HEADERS = {
    "transmission_id": "paypal-transmission-id",
    "transmission_time": "paypal-transmission-time",
    "transmission_sig": "paypal-transmission-sig",
    "cert_url": "paypal-cert-url",
    "auth_algo": "paypal-auth-algo",
}


def extract_transmission(headers: Mapping[str, str]) -> dict[str, str]:
    lowered = {key.lower(): value for key, value in headers.items()}
    return {
        field: lowered[header]
        for field, header in TRANSMISSION_HEADERS.items()
        if lowered.get(header)
    }


async def _access_token(client: httpx.AsyncClient) -> str:
    settings = get_settings()
    response = await client.post(
        f"{settings.paypal_api_base}/v1/oauth2/token",
        data={"grant_type": "client_credentials"},
        auth=(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET),
    )
    response.raise_for_status()
    return response.json()["access_token"]


async def verify_webhook_signature(headers: Mapping[str, str], body: dict[str, Any]) -> str:
    settings = get_settings()
    if not (settings.PAYPAL_WEBHOOK_ID and settings.PAYPAL_CLIENT_ID and settings.PAYPAL_CLIENT_SECRET):
        logger.warning("webhook_verification_not_configured")
        return SKIPPED

    transmission = extract_transmission(headers)
    if len(transmission) < len(TRANSMISSION_HEADERS):
        missing = sorted(set(TRANSMISSION_HEADERS) - set(transmission))
        logger.warning("webhook_verification_headers_missing", missing=missing)
        return SKIPPED

    try:
        async with httpx.AsyncClient(timeout=settings.PAYPAL_HTTP_TIMEOUT) as client:
            token = await _access_token(client)
            response = await client.post(
                f"{settings.paypal_api_base}/v1/notifications/verify-webhook-signature",
                json={
                    **transmission,
                    "webhook_id": settings.PAYPAL_WEBHOOK_ID,
                    "webhook_event": body,
                },
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
            status = response.json().get("verification_status")
    except (httpx.HTTPError, KeyError, ValueError) as e:
        # Fails closed; there is no retry on the provider call
        logger.error("webhook_verification_error", error=str(e))
        return FAILED

    if status != "SUCCESS":
        logger.warning("webhook_signature_invalid", verification_status=status)
        return FAILED
    return VERIFIED
