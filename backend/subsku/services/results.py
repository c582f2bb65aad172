"""Result shapes returned by every engine flow."""

from dataclasses import dataclass, field
from typing import Any

from subsku.services.exceptions import ErrorKind, ServiceError


@dataclass
class OperationResult:
    """``{success, data | error}`` result of one dispatched event."""

    success: bool
    data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ServiceError) -> "OperationResult":
        return cls(success=False, error=str(error), error_kind=error.kind)


@dataclass
class LineItemResult:
    """Outcome for one line item of an order event.

    Failures and skips sit next to successes in the same batch; one bad line
    item never aborts its siblings.
    """

    line_item_id: int
    sku: str | None
    success: bool
    quantity: int = 0
    # Reserved names for allocations, released names for releases
    sub_units: list[str] = field(default_factory=list)
    added_new: int = 0
    removed_excess: int = 0
    skipped: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def skip(cls, line_item_id: int, sku: str | None, reason: str, kind: ErrorKind) -> "LineItemResult":
        return cls(line_item_id=line_item_id, sku=sku, success=False, skipped=True, error=reason, error_kind=kind)

    @classmethod
    def failure(cls, line_item_id: int, sku: str | None, error: ServiceError) -> "LineItemResult":
        return cls(line_item_id=line_item_id, sku=sku, success=False, error=str(error), error_kind=error.kind)


@dataclass
class OrderBatchResult:
    """Per-line-item results of one order event."""

    order_id: int
    line_items: list[LineItemResult] = field(default_factory=list)
    assignments: dict[str, list[str]] = field(default_factory=dict)
    skipped: bool = False
    reason: str | None = None

    @property
    def succeeded(self) -> list[LineItemResult]:
        return [item for item in self.line_items if item.success]

    @property
    def failed(self) -> list[LineItemResult]:
        return [item for item in self.line_items if not item.success and not item.skipped]
