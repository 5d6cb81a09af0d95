from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.items import list_items
from ..db.session import get_db
from ..schemas.item import ItemOut

router = APIRouter(prefix="/items", tags=["items"])


@router.get("/v1", response_model=list[ItemOut])
def api_list_items(category: Optional[str] = None, db: Session = Depends(get_db)):
    return list_items(db, category=category)
