"""Sub-SKU allocation and reconciliation service for Shopify inventory."""
