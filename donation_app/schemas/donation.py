"""Wire models for the donation API.

The portal speaks camelCase JSON (``donationDetails``, ``newQuantity``);
the alias generator maps those to snake_case attributes while still
accepting snake_case input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..crud.items import ItemByCategoryAndName, ItemById, ItemReference
from ..crud.users import UserByEmail, UserById, UserReference
from ..models.donation import DEMOGRAPHIC_FIELDS
from ..services.workflow import IncomingProduct, LineItemRequest, OutgoingDonationRequest


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class DonationDetailIn(CamelModel):
    item_id: Optional[int] = None
    item: Optional[str] = None
    category: Optional[str] = None
    # Range checks happen in the workflow so they surface as domain validation errors.
    new_quantity: Any = 0
    used_quantity: Any = 0

    @model_validator(mode="after")
    def validate_target(self) -> "DonationDetailIn":
        if self.item_id is None and not (self.item and self.item.strip()):
            raise ValueError("itemId or item is required for every donation detail")
        return self

    def reference(self) -> ItemReference:
        if self.item_id is not None:
            return ItemById(self.item_id)
        category = (self.category or "").strip() or None
        return ItemByCategoryAndName(name=self.item.strip(), category=category)


class OutgoingDonationIn(CamelModel):
    user_id: Optional[int] = None
    email: Optional[str] = None
    date: Optional[datetime] = None
    donation_details: list[DonationDetailIn] = Field(default_factory=list)
    number_served: Any = None
    white_num: Any = 0
    latino_num: Any = 0
    black_num: Any = 0
    native_num: Any = 0
    asian_num: Any = 0
    other_num: Any = 0

    def user_reference(self) -> UserReference | None:
        if self.user_id is not None:
            return UserById(self.user_id)
        if self.email and self.email.strip():
            return UserByEmail(self.email)
        return None

    def to_request(self) -> OutgoingDonationRequest:
        return OutgoingDonationRequest(
            details=[
                LineItemRequest(
                    item=detail.reference(),
                    new_quantity=detail.new_quantity,
                    used_quantity=detail.used_quantity,
                )
                for detail in self.donation_details
            ],
            demographics={field: getattr(self, field) for field in DEMOGRAPHIC_FIELDS},
            user=self.user_reference(),
            number_served=self.number_served,
            date=self.date,
        )


class OutgoingDonationStatsOut(CamelModel):
    id: int
    donation_id: int
    number_served: int
    white_num: int
    latino_num: int
    black_num: int
    native_num: int
    asian_num: int
    other_num: int


class DonationDetailOut(CamelModel):
    id: int
    name: Optional[str]
    quantity_used: int
    quantity_new: int
    value_used: Optional[float]
    value_new: Optional[float]


class MessageOut(BaseModel):
    message: str


class IncomingProductIn(CamelModel):
    name: str
    quantity: Any

    def to_product(self) -> IncomingProduct:
        return IncomingProduct(name=self.name, quantity=self.quantity)


class IncomingDonationIn(CamelModel):
    user_id: int
    products: list[IncomingProductIn] = Field(default_factory=list)


class DonationOut(CamelModel):
    id: int
    user_id: int
    date: datetime
    direction: str


class IncomingDonationOut(CamelModel):
    created_donation: DonationOut


class TransactionEntryOut(CamelModel):
    item_id: int
    item: str
    status: str
    value: float
    quantity: int
    total: float


class TransactionOut(CamelModel):
    id: int
    date: datetime
    direction: str
    organization: str
    type: str
    total: float
    items: int
    details: list[TransactionEntryOut]


class TransactionPageOut(CamelModel):
    donations: list[TransactionOut]
    total_number: int
