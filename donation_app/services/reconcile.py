"""Reconcile a donation's previous line items with a proposed replacement set.

The reconciler works on plain quantities keyed by item id:

* **added**: the item is only in the proposed set, so its full proposed
  quantity is drawn from stock.
* **updated**: the item is in both sets, so only ``proposed - previous`` is
  drawn (a negative difference puts stock back).
* **removed**: the item is only in the previous set, so its full previous
  quantity goes back to stock and the detail row is dropped.

Every item is validated before the plan is handed back, and nothing is
mutated here. An item's own earlier allocation to this donation counts as
available, so shrinking or reshuffling a donation is never blocked by the
stock that donation already holds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from ..core.errors import InsufficientStockError, ValidationError
from .ledger import StockLedger


@dataclass(frozen=True)
class LineQuantities:
    item_id: int
    new_quantity: int = 0
    used_quantity: int = 0


@dataclass(frozen=True)
class StockChange:
    item_id: int
    new_quantity: int
    used_quantity: int
    delta_new: int
    delta_used: int


@dataclass
class ReconciliationPlan:
    added: list[StockChange] = field(default_factory=list)
    updated: list[StockChange] = field(default_factory=list)
    removed: list[StockChange] = field(default_factory=list)

    def changes(self) -> Iterator[StockChange]:
        yield from self.added
        yield from self.updated
        yield from self.removed

    @property
    def net_deltas(self) -> dict[int, tuple[int, int]]:
        """``{item_id: (delta_new, delta_used)}`` for every touched item."""

        return {c.item_id: (c.delta_new, c.delta_used) for c in self.changes()}

    def apply(self, ledger: StockLedger) -> None:
        for change in self.changes():
            ledger.adjust(change.item_id, change.delta_used, change.delta_new)


def _index_previous(previous: Iterable[LineQuantities]) -> dict[int, LineQuantities]:
    indexed: dict[int, LineQuantities] = {}
    for line in previous:
        if line.item_id in indexed:
            # Legacy rows from before the unique constraint: fold them together.
            prior = indexed[line.item_id]
            line = LineQuantities(
                line.item_id,
                prior.new_quantity + line.new_quantity,
                prior.used_quantity + line.used_quantity,
            )
        indexed[line.item_id] = line
    return indexed


def _ensure_available(
    ledger: StockLedger,
    line: LineQuantities,
    prior: LineQuantities | None,
) -> None:
    item = ledger.item(line.item_id)
    returned_new = prior.new_quantity if prior else 0
    returned_used = prior.used_quantity if prior else 0
    available_new = item.quantity_new + returned_new
    available_used = item.quantity_used + returned_used
    if line.new_quantity > available_new:
        raise InsufficientStockError(
            item_id=item.id,
            item_name=item.name,
            condition="new",
            requested=line.new_quantity,
            available=available_new,
        )
    if line.used_quantity > available_used:
        raise InsufficientStockError(
            item_id=item.id,
            item_name=item.name,
            condition="used",
            requested=line.used_quantity,
            available=available_used,
        )


def reconcile(
    previous: Iterable[LineQuantities],
    proposed: Iterable[LineQuantities],
    ledger: StockLedger,
) -> ReconciliationPlan:
    prior_by_item = _index_previous(previous)
    proposed_lines = list(proposed)

    seen: set[int] = set()
    for line in proposed_lines:
        if line.item_id in seen:
            raise ValidationError(f"Item {line.item_id} appears more than once in the donation details")
        seen.add(line.item_id)

    for line in proposed_lines:
        _ensure_available(ledger, line, prior_by_item.get(line.item_id))

    plan = ReconciliationPlan()
    for line in proposed_lines:
        prior = prior_by_item.get(line.item_id)
        if prior is None:
            plan.added.append(
                StockChange(
                    item_id=line.item_id,
                    new_quantity=line.new_quantity,
                    used_quantity=line.used_quantity,
                    delta_new=-line.new_quantity,
                    delta_used=-line.used_quantity,
                )
            )
        else:
            plan.updated.append(
                StockChange(
                    item_id=line.item_id,
                    new_quantity=line.new_quantity,
                    used_quantity=line.used_quantity,
                    delta_new=prior.new_quantity - line.new_quantity,
                    delta_used=prior.used_quantity - line.used_quantity,
                )
            )
    for item_id, prior in prior_by_item.items():
        if item_id in seen:
            continue
        plan.removed.append(
            StockChange(
                item_id=item_id,
                new_quantity=0,
                used_quantity=0,
                delta_new=prior.new_quantity,
                delta_used=prior.used_quantity,
            )
        )
    return plan
