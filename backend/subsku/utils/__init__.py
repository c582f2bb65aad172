"""Utility functions and helpers."""

from subsku.utils.keyed_lock import KeyedLock
from subsku.utils.rate_limiter import RateLimiter
from subsku.utils.shopify_helpers import extract_numeric_id, to_gid, verify_webhook_hmac, weight_to_grams

__all__ = [
    "KeyedLock",
    "RateLimiter",
    "extract_numeric_id",
    "to_gid",
    "verify_webhook_hmac",
    "weight_to_grams",
]
