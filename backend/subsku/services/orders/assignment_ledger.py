"""Assignment ledger: which sub-units each line item of an order consumed.

The ledger is a JSON map ``{line_item_id: [sub_unit_name, ...]}`` stored as
one order metafield. Names are kept in assignment order and released LIFO:
a partial cancellation, refund or edit removal gives back the most recently
assigned sub-units first. The map is always written whole.
"""

from dataclasses import dataclass

Assignments = dict[str, list[str]]


@dataclass
class ReleasePlan:
    """Sub-units to release for one line item and the ledger left afterwards."""

    line_item_id: str
    to_release: list[str]
    assignments: Assignments


def ledger_key(line_item_id: int | str) -> str:
    return str(line_item_id)


def record_assignment(assignments: Assignments, line_item_id: int | str, sub_units: list[str]) -> Assignments:
    """Return a new ledger with ``sub_units`` appended to the line item's list.

    Order creation starts from an empty list, so appending and setting are
    the same operation.
    """
    key = ledger_key(line_item_id)
    updated = {item: list(names) for item, names in assignments.items()}
    updated[key] = [*updated.get(key, []), *sub_units]
    return updated


def consume_for_release(assignments: Assignments, line_item_id: int | str, quantity: int) -> ReleasePlan | None:
    """Take the last ``quantity`` names recorded for a line item.

    Returns:
        ReleasePlan with the names to release and the remaining ledger, or
        None when nothing is recorded for the line item (callers skip it)
    """
    key = ledger_key(line_item_id)
    recorded = assignments.get(key) or []
    if not recorded or quantity <= 0:
        return None

    count = min(quantity, len(recorded))
    updated = {item: list(names) for item, names in assignments.items()}
    updated[key] = recorded[: len(recorded) - count]
    return ReleasePlan(line_item_id=key, to_release=recorded[-count:], assignments=updated)
