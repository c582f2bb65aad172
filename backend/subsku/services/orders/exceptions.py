"""Order domain exceptions."""

from subsku.services.exceptions import NotFoundError


class OrderNotFound(NotFoundError):
    """Order not found on Shopify."""

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")
