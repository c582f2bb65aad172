"""Base service exceptions.

These exceptions are raised by the service layer. Order and product flows
convert them into per-line-item results; the webhook worker decides from
the subclass whether a failed event is retried.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure taxonomy reported in operation results."""

    NOT_FOUND = "not_found"
    INSUFFICIENT_AVAILABLE = "insufficient_available"
    INVALID_INPUT = "invalid_input"
    EXTERNAL_CALL_FAILURE = "external_call_failure"
    PERSISTENCE_FAILURE = "persistence_failure"


class ServiceError(Exception):
    """Base service exception."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    # Transient failures are worth a queue retry
    retryable: bool = False


class NotFoundError(ServiceError):
    """Resource not found."""

    kind = ErrorKind.NOT_FOUND


class ValidationError(ServiceError):
    """Invalid or incomplete input (e.g. line item without SKU)."""

    kind = ErrorKind.INVALID_INPUT


class InsufficientAvailable(ServiceError):
    """Fewer Available sub-units than requested."""

    kind = ErrorKind.INSUFFICIENT_AVAILABLE

    def __init__(self, sku: str, requested: int, available: int):
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(f"Not enough available sub-units for {sku}. Requested: {requested}, Available: {available}")


class ExternalCallFailure(ServiceError):
    """Shopify API error or timeout."""

    kind = ErrorKind.EXTERNAL_CALL_FAILURE
    retryable = True


class PersistenceFailure(ServiceError):
    """Store write failed."""

    kind = ErrorKind.PERSISTENCE_FAILURE
    retryable = True
