import calendar
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from app.core import access
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.core.security import get_current_actor
from app.models.models import PaymentStatus, Salon, SalonPayment
from app.schemas.schemas import (
    MessageResponse, SalonPaymentCreate, SalonPaymentResponse, SalonPaymentReview
)

logger = logging.getLogger(__name__)

router = APIRouter()


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamped to the last day of the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


@router.post("/", response_model=SalonPaymentResponse, status_code=status.HTTP_201_CREATED)
def submit_payment(
    payment_data: SalonPaymentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Salon admin submits proof of a subscription payment"""
    if not any(
        m.salon_id == payment_data.salon_id and m.role == access.SALON_ADMIN
        for m in actor.salon_memberships
    ):
        raise PermissionDeniedError("Only Salon Admins can submit payments.")

    salon = db.query(Salon).filter(Salon.id == payment_data.salon_id).first()
    if not salon:
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")

    payment = SalonPayment(**payment_data.model_dump(), status=PaymentStatus.PENDING)
    db.add(payment)
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment {payment.id} submitted for salon {salon.id} by user {actor.user_id}")
    return payment


@router.get("/pending", response_model=List[SalonPaymentResponse])
def list_pending_payments(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Oldest pending payments first (super admin)"""
    access.require_super_admin(actor)
    return db.query(SalonPayment).filter(
        SalonPayment.status == PaymentStatus.PENDING
    ).order_by(SalonPayment.created_at.asc(), SalonPayment.id.asc()).all()


@router.get("/{salon_id}", response_model=List[SalonPaymentResponse])
def list_salon_payments(
    salon_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Payment history of one salon (its members or a super admin)"""
    if not access.is_salon_staff(actor, salon_id):
        raise PermissionDeniedError("Access denied.")

    return db.query(SalonPayment).filter(
        SalonPayment.salon_id == salon_id
    ).order_by(SalonPayment.created_at.desc(), SalonPayment.id.desc()).all()


@router.patch("/{payment_id}/status", response_model=SalonPaymentResponse)
def review_payment(
    payment_id: int,
    review: SalonPaymentReview,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Verify or reject a pending payment (super admin).

    Verifying extends the salon's next due date by the months paid,
    counting from the current due date or from now when none is set.
    """
    access.require_super_admin(actor)

    payment = db.query(SalonPayment).filter(SalonPayment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment record not found.", code="PAYMENT_NOT_FOUND")
    if payment.status != PaymentStatus.PENDING:
        raise ValidationError(f"Payment already {payment.status}", code="PAYMENT_ALREADY_REVIEWED")

    payment.status = review.status
    payment.verified_by = actor.user_id

    if review.status == PaymentStatus.VERIFIED:
        salon = payment.salon
        salon.next_due_date = add_months(salon.next_due_date or datetime.utcnow(), payment.months_paid)

    db.commit()
    db.refresh(payment)
    logger.info(f"Payment {payment.id} marked {payment.status} by user {actor.user_id}")
    return payment


@router.delete("/{payment_id}", response_model=MessageResponse)
def delete_payment(
    payment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Remove a pending or rejected payment record"""
    payment = db.query(SalonPayment).filter(SalonPayment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment record not found.", code="PAYMENT_NOT_FOUND")

    access.require_salon_admin(actor, payment.salon_id)
    if payment.status == PaymentStatus.VERIFIED:
        raise ValidationError("Cannot delete a verified payment record.", code="PAYMENT_VERIFIED")

    db.delete(payment)
    db.commit()
    return MessageResponse(message="Record deleted.")
