"""Read-side donation queries: detail views, demographics and the transaction feed."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..core.errors import ValidationError
from ..models.donation import Donation, DonationDetail, OutgoingDonationStats
from ..models.user import Organization, User

INDIVIDUAL = "Individual"


def get_donation_details(db: Session, donation_id: int) -> list[dict[str, object]]:
    """Line items of a donation joined with the item's name and unit values."""

    stmt = (
        select(DonationDetail)
        .where(DonationDetail.donation_id == donation_id)
        .order_by(DonationDetail.id)
    )
    rows = db.execute(stmt).scalars().all()
    return [
        {
            "id": row.item_id,
            "name": row.item.name if row.item else None,
            "quantity_used": row.used_quantity,
            "quantity_new": row.new_quantity,
            "value_used": row.item.value_used if row.item else None,
            "value_new": row.item.value_new if row.item else None,
        }
        for row in rows
    ]


def get_demographics(db: Session, donation_id: int) -> OutgoingDonationStats | None:
    stmt = select(OutgoingDonationStats).where(OutgoingDonationStats.donation_id == donation_id)
    return db.execute(stmt).scalars().first()


def _detail_entries(detail: DonationDetail) -> list[dict[str, object]]:
    """Split one detail row into separate "Used" and "New" entries with totals."""

    item = detail.item
    entries = []
    if detail.used_quantity > 0:
        entries.append(
            {
                "item_id": item.id,
                "item": item.name,
                "status": "Used",
                "value": item.value_used,
                "quantity": detail.used_quantity,
                "total": detail.used_quantity * item.value_used,
            }
        )
    if detail.new_quantity > 0:
        entries.append(
            {
                "item_id": item.id,
                "item": item.name,
                "status": "New",
                "value": item.value_new,
                "quantity": detail.new_quantity,
                "total": detail.new_quantity * item.value_new,
            }
        )
    return entries


# Columns the transaction feed may be sorted by.
SORT_COLUMNS = {
    "id": Donation.id,
    "date": Donation.date,
    "direction": Donation.direction,
    "organization": Organization.name,
    "type": Organization.type,
}
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class TransactionFilters:
    donation_id: int | None = None
    direction: str | None = None
    organization: str | None = None
    organization_type: str | None = None


def _where(stmt, filters: TransactionFilters | None):
    stmt = stmt.outerjoin(Donation.user).outerjoin(User.organization)
    if filters is None:
        return stmt
    if filters.donation_id is not None:
        stmt = stmt.where(Donation.id == filters.donation_id)
    if filters.direction:
        stmt = stmt.where(Donation.direction == filters.direction)
    if filters.organization:
        if filters.organization.lower() == INDIVIDUAL.lower():
            stmt = stmt.where(Organization.id.is_(None))
        else:
            stmt = stmt.where(Organization.name.ilike(f"%{filters.organization}%"))
    if filters.organization_type:
        if filters.organization_type.lower() == INDIVIDUAL.lower():
            stmt = stmt.where(or_(Organization.type.is_(None), Organization.type == INDIVIDUAL))
        else:
            stmt = stmt.where(Organization.type == filters.organization_type)
    return stmt


def _order_by(sort: str | None, order: str | None) -> list:
    if sort is None:
        return [desc(Donation.date), desc(Donation.id)]
    column = SORT_COLUMNS.get(sort)
    if column is None:
        raise ValidationError(
            f"Cannot sort donations by {sort!r}",
            details={"allowed": sorted(SORT_COLUMNS)},
        )
    direction = (order or "asc").lower()
    if direction not in SORT_ORDERS:
        raise ValidationError(f"Sort order must be one of {', '.join(SORT_ORDERS)}")
    primary = column.desc() if direction == "desc" else column.asc()
    return [primary, desc(Donation.id)]


def count_donations(db: Session, filters: TransactionFilters | None = None) -> int:
    stmt = _where(select(func.count(Donation.id)).select_from(Donation), filters)
    return int(db.execute(stmt).scalar_one())


def list_transactions(
    db: Session,
    page: int = 1,
    page_size: int = 10,
    filters: TransactionFilters | None = None,
    sort: str | None = None,
    order: str | None = None,
) -> list[dict[str, object]]:
    """Page of donations with per-entry and overall monetary totals.

    Newest first unless ``sort`` names one of :data:`SORT_COLUMNS`. ``filters``
    narrow the rows the same way for :func:`count_donations`.
    """

    stmt = (
        _where(select(Donation), filters)
        .options(
            selectinload(Donation.details).joinedload(DonationDetail.item),
            selectinload(Donation.user).joinedload(User.organization),
        )
        .order_by(*_order_by(sort, order))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    donations = db.execute(stmt).unique().scalars().all()

    transactions = []
    for donation in donations:
        details = [entry for detail in donation.details for entry in _detail_entries(detail)]
        organization = donation.user.organization if donation.user else None
        transactions.append(
            {
                "id": donation.id,
                "date": donation.date,
                "direction": donation.direction,
                "organization": organization.name if organization else INDIVIDUAL,
                "type": (organization.type or INDIVIDUAL) if organization else INDIVIDUAL,
                "total": sum(entry["total"] for entry in details),
                "items": len(details),
                "details": details,
            }
        )
    return transactions
