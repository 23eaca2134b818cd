import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from app.core import access
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import get_current_actor
from app.models.models import Salon, SalonMembership, User
from app.schemas.schemas import MessageResponse, StaffAddRequest, StaffResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_salon(db: Session, salon_id: int) -> Salon:
    salon = db.query(Salon).filter(Salon.id == salon_id).first()
    if not salon:
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")
    return salon


@router.get("/", response_model=List[StaffResponse])
def list_staff(
    salon_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """All members of a salon, newest first (salon admin)"""
    access.require_salon_admin(actor, salon_id)
    _get_salon(db, salon_id)

    return db.query(SalonMembership).filter(
        SalonMembership.salon_id == salon_id
    ).order_by(SalonMembership.created_at.desc(), SalonMembership.id.desc()).all()


@router.post("/", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def add_staff(
    salon_id: int,
    payload: StaffAddRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Add an existing user, found by phone, to the salon"""
    access.require_salon_admin(actor, salon_id)
    _get_salon(db, salon_id)

    user = db.query(User).filter(User.phone == payload.phone).first()
    if not user:
        raise NotFoundError("User not found. They must create an account first.", code="USER_NOT_FOUND")

    existing = db.query(SalonMembership).filter(
        SalonMembership.salon_id == salon_id,
        SalonMembership.user_id == user.id
    ).first()
    if existing:
        raise ConflictError("User is already a staff member", code="ALREADY_MEMBER")

    membership = SalonMembership(
        salon_id=salon_id,
        user_id=user.id,
        role=payload.role,
        invited_by=actor.user_id,
    )
    db.add(membership)
    db.commit()
    db.refresh(membership)

    logger.info(f"User {user.id} added to salon {salon_id} as {payload.role} by user {actor.user_id}")
    return membership


@router.delete("/{membership_id}", response_model=MessageResponse)
def remove_staff(
    salon_id: int,
    membership_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    access.require_salon_admin(actor, salon_id)

    membership = db.query(SalonMembership).filter(
        SalonMembership.id == membership_id,
        SalonMembership.salon_id == salon_id
    ).first()
    if not membership:
        raise NotFoundError("Staff member not found", code="MEMBERSHIP_NOT_FOUND")

    if membership.role == access.SALON_ADMIN:
        admin_count = db.query(SalonMembership).filter(
            SalonMembership.salon_id == salon_id,
            SalonMembership.role == access.SALON_ADMIN
        ).count()
        if admin_count <= 1:
            raise ValidationError(
                "Cannot remove the only admin. Assign another admin first.",
                code="LAST_ADMIN"
            )

    db.delete(membership)
    db.commit()
    logger.info(f"Membership {membership_id} removed from salon {salon_id} by user {actor.user_id}")
    return MessageResponse(message="Staff member removed")
