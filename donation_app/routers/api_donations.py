from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud.donations import (
    TransactionFilters,
    count_donations,
    get_demographics,
    get_donation_details,
    list_transactions,
)
from ..db.session import get_db
from ..models.donation import INCOMING, OUTGOING
from ..schemas.donation import (
    DonationDetailOut,
    IncomingDonationIn,
    IncomingDonationOut,
    MessageOut,
    OutgoingDonationIn,
    OutgoingDonationStatsOut,
    TransactionPageOut,
)
from ..services.workflow import UPDATED_MESSAGE, DonationWorkflow

router = APIRouter(prefix="/donation", tags=["donations"])


@router.get("/v1", response_model=TransactionPageOut)
@router.get("/v1/transactions", response_model=TransactionPageOut)
def api_list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    donation_id: Optional[int] = Query(None, alias="id"),
    direction: Optional[str] = Query(None, pattern=f"^({INCOMING}|{OUTGOING})$"),
    organization: Optional[str] = None,
    organization_type: Optional[str] = Query(None, alias="type"),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        donation_id=donation_id,
        direction=direction,
        organization=organization,
        organization_type=organization_type,
    )
    return {
        "donations": list_transactions(db, page=page, page_size=page_size, filters=filters, sort=sort, order=order),
        "total_number": count_donations(db, filters),
    }


@router.post("/v1/outgoing", response_model=OutgoingDonationStatsOut)
def api_create_outgoing(payload: OutgoingDonationIn, db: Session = Depends(get_db)):
    return DonationWorkflow(db).create_outgoing(payload.to_request())


@router.put("/v1/outgoing/{donation_id}", response_model=MessageOut)
def api_update_outgoing(donation_id: int, payload: OutgoingDonationIn, db: Session = Depends(get_db)):
    DonationWorkflow(db).update_outgoing(donation_id, payload.to_request())
    return {"message": UPDATED_MESSAGE}


@router.post("/v1/incoming", response_model=IncomingDonationOut)
def api_create_incoming(payload: IncomingDonationIn, db: Session = Depends(get_db)):
    donation = DonationWorkflow(db).create_incoming(
        payload.user_id, [product.to_product() for product in payload.products]
    )
    return {"created_donation": donation}


@router.get("/v1/details/{donation_id}", response_model=list[DonationDetailOut])
def api_donation_details(donation_id: int, db: Session = Depends(get_db)):
    return get_donation_details(db, donation_id)


@router.get("/v1/demographics/{donation_id}", response_model=OutgoingDonationStatsOut | None)
def api_donation_demographics(donation_id: int, db: Session = Depends(get_db)):
    return get_demographics(db, donation_id)


@router.delete("/v1/{donation_id}")
def api_delete_donation(donation_id: int, db: Session = Depends(get_db)):
    DonationWorkflow(db).delete_donation(donation_id)
    return {"status": "deleted"}
