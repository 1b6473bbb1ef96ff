"""Payment submission, voiding and bill balance endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from waterbill.api.deps import get_db, get_staff_user
from waterbill.api.schemas import (
    BalanceResponse,
    BillResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentSubmitResponse,
)
from waterbill.models.user import User
from waterbill.services.payment_service import BillBalance, PaymentReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


def _balance_response(balance: BillBalance) -> BalanceResponse:
    return BalanceResponse(
        bill=BillResponse.model_validate(balance.bill),
        amount_paid=balance.amount_paid,
        amount_due=balance.amount_due,
        outstanding=balance.outstanding,
    )


@router.post("/payments", response_model=PaymentSubmitResponse)
def submit_payment(
    request: PaymentRequest,
    db: Session = Depends(get_db),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> PaymentSubmitResponse:
    """Record a payment; the proof is referenced by URL."""
    result = PaymentReconciler(db).apply_payment(
        request.bill_id,
        request.amount,
        payment_date=request.payment_date,
        method=request.method,
        proof_url=request.proof_url,
        note=request.note,
        recorded_by=user.username if user else None,
        actor_id=user.id if user else None,
    )
    return PaymentSubmitResponse(
        payment=PaymentResponse.model_validate(result.payment),
        bill=BillResponse.model_validate(result.bill),
        amount_paid=result.amount_paid,
        amount_due=result.amount_due,
    )


@router.delete("/payments/{payment_id}", response_model=BalanceResponse)
def void_payment(
    payment_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> BalanceResponse:
    balance = PaymentReconciler(db).void_payment(payment_id, actor_id=user.id if user else None)
    return _balance_response(balance)


@router.get("/bills/{bill_id}/balance", response_model=BalanceResponse)
def get_balance(
    bill_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> BalanceResponse:
    return _balance_response(PaymentReconciler(db).get_balance(bill_id))


__all__ = ["router"]
