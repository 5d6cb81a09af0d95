from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Float, Integer, Text

from ..db.session import Base


class Item(Base):
    """A donatable good and its on-hand stock, split into new and used units.

    ``version`` is bumped by SQLAlchemy on every UPDATE; a writer holding a
    stale copy of the row gets ``StaleDataError`` at flush time instead of
    silently overwriting another request's stock change.
    """

    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("quantity_new >= 0", name="ck_items_quantity_new_non_negative"),
        CheckConstraint("quantity_used >= 0", name="ck_items_quantity_used_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, index=True)
    category = Column(Text, nullable=False, index=True)
    quantity_new = Column(Integer, nullable=False, default=0)
    quantity_used = Column(Integer, nullable=False, default=0)
    value_new = Column(Float, nullable=False, default=0.0)
    value_used = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} new={self.quantity_new} used={self.quantity_used}>"
