"""Stock ledger: signed adjustments to an item's new/used quantities."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.errors import InsufficientStockError, NotFoundError
from ..models.item import Item

logger = logging.getLogger(__name__)


class StockLedger:
    """Applies stock deltas to items inside the caller's session.

    Negative deltas consume stock, positive ones return or restock it. The
    ledger never commits; the workflow that owns the session decides when the
    changes become durable.
    """

    def __init__(self, db: Session, items: dict[int, Item] | None = None) -> None:
        self._db = db
        self._items: dict[int, Item] = dict(items or {})

    def item(self, item_id: int) -> Item:
        item = self._items.get(item_id)
        if item is None:
            item = self._db.get(Item, item_id)
            if item is None:
                raise NotFoundError(f"No item with the given id: {item_id}")
            self._items[item_id] = item
        return item

    def check(self, item_id: int, delta_used: int, delta_new: int) -> Item:
        """Raise ``InsufficientStockError`` if the deltas would take stock below zero."""

        item = self.item(item_id)
        if item.quantity_new + delta_new < 0:
            raise InsufficientStockError(
                item_id=item.id,
                item_name=item.name,
                condition="new",
                requested=-delta_new,
                available=item.quantity_new,
            )
        if item.quantity_used + delta_used < 0:
            raise InsufficientStockError(
                item_id=item.id,
                item_name=item.name,
                condition="used",
                requested=-delta_used,
                available=item.quantity_used,
            )
        return item

    def adjust(self, item_id: int, delta_used: int, delta_new: int) -> Item:
        item = self.check(item_id, delta_used, delta_new)
        if not delta_used and not delta_new:
            return item
        item.quantity_used += delta_used
        item.quantity_new += delta_new
        logger.debug(
            "stock.adjusted",
            extra={
                "extra_data": {
                    "item_id": item.id,
                    "delta_used": delta_used,
                    "delta_new": delta_new,
                    "quantity_used": item.quantity_used,
                    "quantity_new": item.quantity_new,
                }
            },
        )
        return item
