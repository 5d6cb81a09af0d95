from __future__ import annotations

from .donation import CamelModel


class ItemOut(CamelModel):
    id: int
    category: str
    name: str
    quantity_used: int
    quantity_new: int
    value_new: float
    value_used: float
