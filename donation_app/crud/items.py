"""Item lookups and reference resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import AmbiguousReferenceError, NotFoundError
from ..models.item import Item


@dataclass(frozen=True)
class ItemById:
    id: int


@dataclass(frozen=True)
class ItemByCategoryAndName:
    name: str
    # The admin portal's edit form only sends names; category narrows the match when given.
    category: Optional[str] = None

    def describe(self) -> str:
        if self.category:
            return f"(category, name): ({self.category}, {self.name})"
        return f"name: {self.name}"


ItemReference = Union[ItemById, ItemByCategoryAndName]


def list_items(db: Session, category: str | None = None) -> list[Item]:
    stmt = select(Item).order_by(Item.category, Item.name)
    if category:
        stmt = stmt.where(Item.category == category)
    return db.execute(stmt).scalars().all()


def find_items(db: Session, name: str, category: str | None = None) -> list[Item]:
    stmt = select(Item).where(Item.name == name.strip()).order_by(Item.id)
    if category:
        stmt = stmt.where(Item.category == category.strip())
    return db.execute(stmt).scalars().all()


def resolve_item(db: Session, ref: ItemReference) -> Item:
    """Turn a reference into exactly one item row or raise."""

    if isinstance(ref, ItemById):
        item = db.get(Item, ref.id)
        if item is None:
            raise NotFoundError(f"No item with the given id: {ref.id}")
        return item

    matches = find_items(db, ref.name, ref.category)
    if not matches:
        raise NotFoundError(f"No item with the given {ref.describe()}")
    if len(matches) > 1:
        raise AmbiguousReferenceError(f"More than one item found by the given {ref.describe()}")
    return matches[0]


def lock_items(db: Session, item_ids: list[int]) -> dict[int, Item]:
    """Load items with a row lock (where the backend supports one) keyed by id.

    ``populate_existing`` refreshes rows already in the identity map so stock
    checks always see the committed values.
    """

    if not item_ids:
        return {}
    stmt = (
        select(Item)
        .where(Item.id.in_(sorted(set(item_ids))))
        .order_by(Item.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {item.id: item for item in db.execute(stmt).scalars().all()}
