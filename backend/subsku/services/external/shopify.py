"""Shopify Admin GraphQL API client."""

import json
from typing import Any

import httpx
import structlog

from subsku.config import settings
from subsku.services.external.exceptions import ShopifyError, ShopifyNotConfigured, ShopifyThrottled
from subsku.services.external.shopify_models import (
    InventoryItemInfo,
    ShopifyLineItem,
    ShopifyOrder,
)
from subsku.utils.rate_limiter import RateLimiter
from subsku.utils.request_retry import RequestRetryConfig, get_request_retrying
from subsku.utils.shopify_helpers import extract_numeric_id, to_gid

logger = structlog.get_logger(__name__)

GET_INVENTORY_ITEM_QUERY = """
query getInventoryItem($id: ID!) {
  inventoryItem(id: $id) {
    id
    sku
    variant {
      sku
      product {
        title
      }
    }
  }
}
"""

GET_INVENTORY_QUANTITY_QUERY = """
query getInventoryItemsBySku($query: String!) {
  inventoryItems(first: 10, query: $query) {
    edges {
      node {
        id
        sku
        variant {
          sku
          inventoryQuantity
        }
      }
    }
  }
}
"""

GET_ORDER_QUERY = """
query getOrder($id: ID!, $namespace: String!, $key: String!) {
  order(id: $id) {
    id
    name
    metafield(namespace: $namespace, key: $key) {
      value
    }
    lineItems(first: 250) {
      nodes {
        id
        sku
        quantity
        title
        variantTitle
      }
    }
  }
}
"""

SET_METAFIELDS_MUTATION = """
mutation setOrderMetafields($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      id
      key
    }
    userErrors {
      field
      message
    }
  }
}
"""


def _is_throttled(errors: list[dict[str, Any]]) -> bool:
    for error in errors:
        code = (error.get("extensions") or {}).get("code")
        message = str(error.get("message", ""))
        if code == "THROTTLED" or "Throttled" in message or "Rate limit" in message:
            return True
    return False


def parse_assignments(raw: str | None) -> dict[str, list[str]] | None:
    """Parse the ledger metafield JSON; None when absent or unreadable."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Invalid assignment ledger JSON", value=raw[:200])
        return None
    if not isinstance(data, dict):
        return None
    return {str(key): [str(name) for name in value] for key, value in data.items() if isinstance(value, list)}


class ShopifyService:
    """Service for interacting with Shopify GraphQL API.

    Every call waits on the injected RateLimiter, so one instance should be
    used per worker.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RequestRetryConfig | None = None,
    ) -> None:
        self._graphql_url = f"{settings.shopify_store_url}/admin/api/{settings.shopify_api_version}/graphql.json"
        self.rate_limiter = rate_limiter or RateLimiter(settings.shopify_min_request_interval)
        self._transport = transport
        self._retry_config = retry_config

    def _get_client(self) -> httpx.AsyncClient:
        """Create a configured httpx client."""
        if not settings.shopify_access_token or not settings.shopify_store_url:
            raise ShopifyNotConfigured("Shopify credentials not configured")

        return httpx.AsyncClient(
            transport=self._transport,
            timeout=settings.shopify_request_timeout,
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": settings.shopify_access_token,
            },
        )

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL request and return its ``data`` object.

        Network errors and throttling are retried with backoff.

        Raises:
            ShopifyError: HTTP error, GraphQL errors, or retries exhausted
        """
        try:
            async with self._get_client() as client:
                async for attempt in get_request_retrying(
                    self._retry_config,
                    retry_on=(httpx.RequestError, ShopifyThrottled),
                ):
                    with attempt:
                        await self.rate_limiter.acquire()
                        response = await client.post(self._graphql_url, json={"query": query, "variables": variables})
                        return self._parse_response(response)
        except httpx.RequestError as e:
            raise ShopifyError(f"Shopify request failed: {e}") from e

        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _parse_response(response: httpx.Response) -> dict[str, Any]:
        if response.status_code == 429:
            raise ShopifyThrottled("Shopify rate limit reached (HTTP 429)")
        if response.is_error:
            raise ShopifyError(f"GraphQL request failed: HTTP {response.status_code}")

        payload = response.json()
        errors = payload.get("errors")
        if errors:
            if _is_throttled(errors):
                raise ShopifyThrottled("Shopify rate limit reached")
            raise ShopifyError(f"GraphQL errors: {json.dumps(errors)}")

        data: dict[str, Any] = payload.get("data") or {}
        return data

    async def get_inventory_item_sku(self, inventory_item_id: int) -> InventoryItemInfo | None:
        """Resolve an inventory item to its variant SKU and product title.

        Returns:
            InventoryItemInfo, or None if the inventory item does not exist
        """
        data = await self._graphql(GET_INVENTORY_ITEM_QUERY, {"id": to_gid("InventoryItem", inventory_item_id)})
        item = data.get("inventoryItem")
        if not item:
            return None

        variant = item.get("variant") or {}
        product = variant.get("product") or {}
        return InventoryItemInfo(
            inventory_item_id=inventory_item_id,
            sku=variant.get("sku") or item.get("sku") or None,
            product_title=product.get("title"),
        )

    async def get_inventory_quantity(self, sku: str) -> int:
        """Total inventory quantity Shopify reports for an exact SKU.

        Sums ``inventoryQuantity`` over the matched inventory items; the search
        is a prefix match, so items whose SKU differs are ignored.
        """
        data = await self._graphql(GET_INVENTORY_QUANTITY_QUERY, {"query": f'sku:"{sku}"'})
        edges = (data.get("inventoryItems") or {}).get("edges") or []

        total = 0
        for edge in edges:
            node = edge.get("node") or {}
            if node.get("sku") != sku:
                continue
            total += int((node.get("variant") or {}).get("inventoryQuantity") or 0)

        logger.debug("Fetched Shopify inventory quantity", sku=sku, quantity=total, matches=len(edges))
        return total

    async def get_order(self, order_id: int) -> ShopifyOrder | None:
        """Fetch an order with line items and its assignment ledger.

        Returns:
            ShopifyOrder, or None if the order does not exist
        """
        data = await self._graphql(
            GET_ORDER_QUERY,
            {
                "id": to_gid("Order", order_id),
                "namespace": settings.ledger_metafield_namespace,
                "key": settings.ledger_metafield_key,
            },
        )
        order = data.get("order")
        if not order:
            return None

        metafield = order.get("metafield") or {}
        line_items = [
            ShopifyLineItem(
                id=extract_numeric_id(node["id"]),
                sku=node.get("sku") or None,
                quantity=node.get("quantity") or 0,
                title=node.get("title") or "",
                variant_title=node.get("variantTitle"),
            )
            for node in (order.get("lineItems") or {}).get("nodes") or []
        ]
        return ShopifyOrder(
            id=extract_numeric_id(order["id"]),
            name=order.get("name") or "",
            line_items=line_items,
            assignments=parse_assignments(metafield.get("value")),
        )

    async def write_assignments(self, order_id: int, assignments: dict[str, list[str]]) -> None:
        """Store the whole assignment ledger as the order metafield.

        Raises:
            ShopifyError: Request failed or Shopify reported user errors
        """
        data = await self._graphql(
            SET_METAFIELDS_MUTATION,
            {
                "metafields": [
                    {
                        "ownerId": to_gid("Order", order_id),
                        "namespace": settings.ledger_metafield_namespace,
                        "key": settings.ledger_metafield_key,
                        "type": "json",
                        "value": json.dumps(assignments),
                    }
                ]
            },
        )
        user_errors = (data.get("metafieldsSet") or {}).get("userErrors") or []
        if user_errors:
            raise ShopifyError(f"Failed to store assignment ledger: {json.dumps(user_errors)}")

        logger.info(
            "Stored assignment ledger",
            order_id=order_id,
            line_items=len(assignments),
            sub_units=sum(len(names) for names in assignments.values()),
        )
