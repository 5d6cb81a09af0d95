from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base

INCOMING = "incoming"
OUTGOING = "outgoing"

DEMOGRAPHIC_FIELDS = ("white_num", "latino_num", "black_num", "native_num", "asian_num", "other_num")


class Donation(Base):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False)
    direction = Column(Text, nullable=False, default=OUTGOING)

    user = relationship("User", back_populates="donations", lazy="joined")
    details = relationship(
        "DonationDetail",
        back_populates="donation",
        cascade="all, delete-orphan",
        order_by="DonationDetail.id",
    )
    stats = relationship(
        "OutgoingDonationStats",
        back_populates="donation",
        cascade="all, delete-orphan",
        uselist=False,
    )

    @property
    def is_outgoing(self) -> bool:
        return self.direction == OUTGOING


class DonationDetail(Base):
    """One item/quantity line of a donation. Owned by the donation, references a shared item."""

    __tablename__ = "donation_details"
    __table_args__ = (
        UniqueConstraint("donation_id", "item_id", name="uq_donation_details_donation_item"),
        CheckConstraint("new_quantity >= 0", name="ck_donation_details_new_non_negative"),
        CheckConstraint("used_quantity >= 0", name="ck_donation_details_used_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    donation_id = Column(Integer, ForeignKey("donations.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    new_quantity = Column(Integer, nullable=False, default=0)
    used_quantity = Column(Integer, nullable=False, default=0)

    donation = relationship("Donation", back_populates="details")
    item = relationship("Item", lazy="joined")


class OutgoingDonationStats(Base):
    __tablename__ = "outgoing_donation_stats"
    __table_args__ = (CheckConstraint("number_served > 0", name="ck_stats_number_served_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    donation_id = Column(Integer, ForeignKey("donations.id"), nullable=False, unique=True, index=True)
    number_served = Column(Integer, nullable=False)
    white_num = Column(Integer, nullable=False, default=0)
    latino_num = Column(Integer, nullable=False, default=0)
    black_num = Column(Integer, nullable=False, default=0)
    native_num = Column(Integer, nullable=False, default=0)
    asian_num = Column(Integer, nullable=False, default=0)
    other_num = Column(Integer, nullable=False, default=0)

    donation = relationship("Donation", back_populates="stats")
