"""Inventory domain exceptions."""

from subsku.services.exceptions import NotFoundError, PersistenceFailure


class SkuNotFound(NotFoundError):
    """No pool exists for the SKU."""

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU {sku} not found")


class StalePoolError(PersistenceFailure):
    """Pool changed between read and write (compare-and-set lost)."""

    def __init__(self, sku: str, version: int):
        self.sku = sku
        self.version = version
        super().__init__(f"SKU pool {sku} was modified concurrently (read version {version})")
