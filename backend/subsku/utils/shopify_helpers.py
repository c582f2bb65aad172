"""Shopify-related utility functions."""

import hashlib
import hmac
import re
from base64 import b64encode


def extract_numeric_id(gid: str | int) -> int:
    """Extract numeric ID from Shopify GID format (e.g., 'gid://shopify/LineItem/12345')."""
    if isinstance(gid, int):
        return gid
    match = re.search(r"(\d+)$", gid)
    if match:
        return int(match.group(1))
    raise ValueError(f"Could not extract numeric ID from GID: {gid}")


def to_gid(resource: str, numeric_id: int | str) -> str:
    """Build a Shopify GID, e.g. to_gid("Order", 123) -> 'gid://shopify/Order/123'."""
    return f"gid://shopify/{resource}/{numeric_id}"


def verify_webhook_hmac(body: bytes, hmac_header: str | None, secret: str) -> bool:
    """
    Verify Shopify webhook HMAC signature.

    Args:
        body: Raw request body bytes
        hmac_header: X-Shopify-Hmac-Sha256 header value
        secret: Shared webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not hmac_header or not secret:
        return False

    computed_hmac = b64encode(
        hmac.new(
            secret.encode("utf-8"),
            body,
            hashlib.sha256,
        ).digest()
    ).decode("utf-8")

    return hmac.compare_digest(computed_hmac, hmac_header)


_GRAMS_PER_UNIT = {
    "g": 1.0,
    "kg": 1000.0,
    "lb": 453.592,
    "oz": 28.3495,
}


def weight_to_grams(weight: float | None, unit: str | None) -> float | None:
    """Convert a Shopify variant weight to grams; None for missing or unknown units."""
    if weight is None or not unit:
        return None
    factor = _GRAMS_PER_UNIT.get(unit.lower())
    if factor is None:
        return None
    return weight * factor
