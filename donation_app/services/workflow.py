"""Create, update and delete donations as single units of work.

An outgoing create/update request moves through the stages

    RECEIVED -> VALIDATED -> RECONCILED -> PERSISTED -> SUCCESS | FAILED

within one database transaction. Validation and reconciliation only read
(items are locked for the rest of the transaction); every write happens
after the whole request has been checked, and any error rolls all of them
back together. The ``version`` column on items turns a concurrent writer
that slipped past the row lock into a ``ConcurrencyConflictError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.errors import (
    AmbiguousReferenceError,
    ConcurrencyConflictError,
    DonationError,
    NotFoundError,
    ValidationError,
)
from ..crud.items import ItemReference, find_items, lock_items, resolve_item
from ..crud.users import UserById, UserReference, resolve_user
from ..middlewares import actor_ctx_var
from ..models.donation import (
    DEMOGRAPHIC_FIELDS,
    INCOMING,
    OUTGOING,
    Donation,
    DonationDetail,
    OutgoingDonationStats,
)
from ..models.item import Item
from .demographics import aggregate, is_non_negative_integer
from .ledger import StockLedger
from .reconcile import LineQuantities, ReconciliationPlan, reconcile

logger = logging.getLogger(__name__)

RECEIVED = "received"
VALIDATED = "validated"
RECONCILED = "reconciled"
PERSISTED = "persisted"
SUCCESS = "success"
FAILED = "failed"

UPDATED_MESSAGE = "Outgoing Donation Updated"
PLACEHOLDER_CATEGORY = "TBD"


@dataclass
class LineItemRequest:
    item: ItemReference
    new_quantity: Any = 0
    used_quantity: Any = 0


@dataclass
class OutgoingDonationRequest:
    details: list[LineItemRequest] = field(default_factory=list)
    demographics: dict[str, Any] = field(default_factory=dict)
    user: UserReference | None = None
    number_served: Any = None
    date: datetime | None = None


@dataclass
class IncomingProduct:
    name: str
    quantity: Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DonationWorkflow:
    """Entry point for every donation write.

    The workflow owns the transaction boundary of the session it is given:
    each public method commits on success and rolls back on any failure.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.stage = RECEIVED

    # ------------------------------------------------------------------
    # transaction plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _unit_of_work(self, operation: str, **context: Any) -> Iterator[None]:
        self.stage = RECEIVED
        try:
            yield
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            self._failed(operation, context, "concurrent stock update")
            raise ConcurrencyConflictError(
                "Inventory changed while the donation was being saved; please retry"
            ) from exc
        except DonationError as exc:
            self.db.rollback()
            self._failed(operation, context, exc.message)
            raise
        except Exception:
            self.db.rollback()
            logger.exception(
                "donation.%s.failed",
                operation,
                extra={"extra_data": {**context, "stage": self.stage}},
            )
            raise

    def _failed(self, operation: str, context: dict[str, Any], reason: str) -> None:
        logger.warning(
            "donation.%s.failed",
            operation,
            extra={"extra_data": {**context, "stage": self.stage, "reason": reason}},
        )
        self.stage = FAILED

    def _advance(self, operation: str, stage: str, **context: Any) -> None:
        self.stage = stage
        logger.info("donation.%s.%s", operation, stage, extra={"extra_data": context})

    # ------------------------------------------------------------------
    # validation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_quantities(details: list[LineItemRequest]) -> None:
        for line in details:
            if not is_non_negative_integer(line.new_quantity) or not is_non_negative_integer(line.used_quantity):
                raise ValidationError("Quantity of items must be non-negative integers")
            if line.new_quantity == 0 and line.used_quantity == 0:
                raise ValidationError("Each item in a donation needs a new or used quantity above zero")

    def _resolve_lines(self, details: list[LineItemRequest]) -> list[LineQuantities]:
        lines = []
        for line in details:
            item = resolve_item(self.db, line.item)
            lines.append(LineQuantities(item.id, line.new_quantity, line.used_quantity))
        return lines

    def _validate_outgoing(self, request: OutgoingDonationRequest) -> tuple[int, list[LineQuantities]]:
        number_served = aggregate(request.demographics, request.number_served)
        self._validate_quantities(request.details)
        return number_served, self._resolve_lines(request.details)

    def _plan(self, previous: list[LineQuantities], proposed: list[LineQuantities]) -> tuple[ReconciliationPlan, StockLedger]:
        item_ids = [line.item_id for line in previous] + [line.item_id for line in proposed]
        ledger = StockLedger(self.db, lock_items(self.db, item_ids))
        return reconcile(previous, proposed, ledger), ledger

    def _write_stats(self, donation: Donation, number_served: int, demographics: dict[str, Any]) -> OutgoingDonationStats:
        stats = donation.stats
        if stats is None:
            stats = OutgoingDonationStats(number_served=number_served)
            donation.stats = stats
        stats.number_served = number_served
        for name in DEMOGRAPHIC_FIELDS:
            setattr(stats, name, demographics.get(name, 0))
        return stats

    # ------------------------------------------------------------------
    # outgoing donations
    # ------------------------------------------------------------------
    def create_outgoing(self, request: OutgoingDonationRequest) -> OutgoingDonationStats:
        with self._unit_of_work("create_outgoing"):
            if request.user is None:
                raise ValidationError("userId or email is required")
            number_served, proposed = self._validate_outgoing(request)
            user = resolve_user(self.db, request.user)
            actor_ctx_var.set(user.email)
            self._advance("create_outgoing", VALIDATED, user_id=user.id, items=len(proposed))

            plan, ledger = self._plan([], proposed)
            self._advance("create_outgoing", RECONCILED, added=len(plan.added), deltas=plan.net_deltas)

            donation = Donation(user_id=user.id, date=request.date or _utcnow(), direction=OUTGOING)
            self.db.add(donation)
            plan.apply(ledger)
            for change in plan.added:
                donation.details.append(
                    DonationDetail(
                        item_id=change.item_id,
                        new_quantity=change.new_quantity,
                        used_quantity=change.used_quantity,
                    )
                )
            stats = self._write_stats(donation, number_served, request.demographics)
            self.db.flush()
            self._advance("create_outgoing", PERSISTED, donation_id=donation.id)

        self.db.refresh(stats)
        self._advance("create_outgoing", SUCCESS, donation_id=stats.donation_id, number_served=stats.number_served)
        return stats

    def update_outgoing(self, donation_id: int, request: OutgoingDonationRequest) -> Donation:
        with self._unit_of_work("update_outgoing", donation_id=donation_id):
            donation = self.db.get(Donation, donation_id)
            if donation is None or not donation.is_outgoing:
                raise NotFoundError(f"No outgoing donation with the given id: {donation_id}")
            number_served, proposed = self._validate_outgoing(request)
            if request.user is not None:
                actor_ctx_var.set(resolve_user(self.db, request.user).email)
            self._advance("update_outgoing", VALIDATED, donation_id=donation_id, items=len(proposed))

            previous = [
                LineQuantities(d.item_id, d.new_quantity, d.used_quantity) for d in donation.details
            ]
            plan, ledger = self._plan(previous, proposed)
            self._advance(
                "update_outgoing",
                RECONCILED,
                donation_id=donation_id,
                added=len(plan.added),
                updated=len(plan.updated),
                removed=len(plan.removed),
                deltas=plan.net_deltas,
            )

            plan.apply(ledger)
            rows_by_item: dict[int, list[DonationDetail]] = {}
            for row in donation.details:
                rows_by_item.setdefault(row.item_id, []).append(row)
            for change in plan.added:
                donation.details.append(
                    DonationDetail(
                        item_id=change.item_id,
                        new_quantity=change.new_quantity,
                        used_quantity=change.used_quantity,
                    )
                )
            for change in plan.updated:
                keep, *extra = rows_by_item[change.item_id]
                keep.new_quantity = change.new_quantity
                keep.used_quantity = change.used_quantity
                for row in extra:
                    donation.details.remove(row)
            for change in plan.removed:
                for row in rows_by_item[change.item_id]:
                    donation.details.remove(row)
            self._write_stats(donation, number_served, request.demographics)
            donation.date = _utcnow()
            self.db.flush()
            self._advance("update_outgoing", PERSISTED, donation_id=donation_id)

        self._advance("update_outgoing", SUCCESS, donation_id=donation_id)
        return donation

    # ------------------------------------------------------------------
    # incoming donations
    # ------------------------------------------------------------------
    def create_incoming(self, user: UserReference | int, products: list[IncomingProduct]) -> Donation:
        """Record goods received: stock goes up, unknown items are created on the fly."""

        if isinstance(user, int):
            user = UserById(user)

        with self._unit_of_work("create_incoming"):
            totals: dict[str, int] = {}
            for product in products:
                name = (product.name or "").strip()
                if not name:
                    raise ValidationError("Product name is required")
                if not is_non_negative_integer(product.quantity) or product.quantity == 0:
                    raise ValidationError("Quantity of products must be positive integers")
                totals[name] = totals.get(name, 0) + product.quantity
            owner = resolve_user(self.db, user)
            actor_ctx_var.set(owner.email)
            self._advance("create_incoming", VALIDATED, user_id=owner.id, products=len(totals))

            donation = Donation(user_id=owner.id, date=_utcnow(), direction=INCOMING)
            self.db.add(donation)
            ledger = StockLedger(self.db)
            for name, quantity in totals.items():
                matches = find_items(self.db, name)
                if len(matches) > 1:
                    raise AmbiguousReferenceError(f"More than one item found by the given name: {name}")
                if matches:
                    item = ledger.adjust(matches[0].id, 0, quantity)
                else:
                    item = Item(
                        name=name,
                        category=PLACEHOLDER_CATEGORY,
                        quantity_new=quantity,
                        quantity_used=0,
                        value_new=0.0,
                        value_used=0.0,
                    )
                    self.db.add(item)
                donation.details.append(DonationDetail(item=item, new_quantity=quantity, used_quantity=0))
            self.db.flush()
            self._advance("create_incoming", PERSISTED, donation_id=donation.id)

        self.db.refresh(donation)
        return donation

    # ------------------------------------------------------------------
    # deletion
    # ------------------------------------------------------------------
    def delete_donation(self, donation_id: int) -> None:
        """Remove a donation with its details and stats, undoing its stock effect."""

        with self._unit_of_work("delete", donation_id=donation_id):
            donation = self.db.get(Donation, donation_id)
            if donation is None:
                raise NotFoundError(f"No donation with the given id: {donation_id}")
            ledger = StockLedger(self.db, lock_items(self.db, [d.item_id for d in donation.details]))
            sign = 1 if donation.is_outgoing else -1
            for detail in donation.details:
                ledger.check(detail.item_id, sign * detail.used_quantity, sign * detail.new_quantity)
            for detail in donation.details:
                ledger.adjust(detail.item_id, sign * detail.used_quantity, sign * detail.new_quantity)
            self.db.delete(donation)
            self.db.flush()
            self._advance("delete", PERSISTED, donation_id=donation_id)
