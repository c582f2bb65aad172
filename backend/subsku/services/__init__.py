"""Service layer for sub-SKU pools, orders and products."""
