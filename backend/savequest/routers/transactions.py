from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import QualifyingPaymentResponse, TransactionListResponse, TransactionSchema
from ..security import RequireAPIAuth
from ..services.normalizer import parse_date
from ..services.stores import TransactionStore

router = APIRouter(prefix="/transactions", tags=["transactions"], dependencies=[RequireAPIAuth])


@router.get("/{user_id}", response_model=TransactionListResponse, summary="Most recent transactions for a user")
def list_recent_transactions(
    user_id: str,
    limit: int = Query(default=10, ge=1, le=500),
    db: Session = Depends(get_db),
):
    txns = TransactionStore(db).recent(user_id, limit)
    return TransactionListResponse(transactions=[TransactionSchema.model_validate(t) for t in txns])


@router.get(
    "/{user_id}/qualifying-payment",
    response_model=QualifyingPaymentResponse,
    summary="First debit on a given day, as proof of a purchase",
)
def get_qualifying_payment(
    user_id: str,
    day: str = Query(alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    try:
        iso_day = parse_date(day)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not iso_day:
        raise HTTPException(status_code=400, detail="date is required.")

    hits = TransactionStore(db).qualifying_payments(user_id, iso_day)
    if not hits:
        raise HTTPException(
            status_code=404,
            detail="No qualifying payments found for this date. Make a purchase to complete your check-in.",
        )
    return QualifyingPaymentResponse(transaction=TransactionSchema.model_validate(hits[0]), total_qualifying=len(hits))
