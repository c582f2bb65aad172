"""Shopify client exceptions."""

from subsku.services.exceptions import ExternalCallFailure


class ShopifyError(ExternalCallFailure):
    """Shopify request failed or returned GraphQL/user errors."""


class ShopifyThrottled(ShopifyError):
    """Shopify rejected the request because of its rate limit."""


class ShopifyNotConfigured(ShopifyError):
    """Shopify credentials are missing."""

    retryable = False
