from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core import access
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.core.security import get_current_actor, get_current_user
from app.models.models import Booking, SalonMembership, User, UserRole
from app.schemas.schemas import (
    AdminUserUpdate, MembershipResponse, MessageResponse, RoleChangeRequest, UserListResponse,
    UserResponse, UserUpdate
)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def read_my_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
def update_my_profile(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update own profile"""
    update_data = user_update.model_dump(exclude_unset=True)
    if "email" in update_data and update_data["email"]:
        update_data["email"] = update_data["email"].lower()
    for field, value in update_data.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/me/roles", response_model=List[str])
def read_my_roles(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    roles = db.query(UserRole).filter(UserRole.user_id == actor.user_id).all()
    return [r.role for r in roles]


@router.get("/me/memberships", response_model=List[MembershipResponse])
def read_my_memberships(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Salons the current user works at"""
    memberships = db.query(SalonMembership).filter(
        SalonMembership.user_id == actor.user_id
    ).order_by(SalonMembership.created_at.asc()).all()

    return [
        MembershipResponse(
            id=m.id,
            salon_id=m.salon_id,
            role=m.role,
            salon_name=m.salon.name,
            salon_slug=m.salon.slug,
            created_at=m.created_at,
        )
        for m in memberships
    ]


@router.get("/", response_model=UserListResponse)
def list_users(
    salon_id: Optional[int] = Query(None, alias="salonId"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="limit"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    List users.

    Super admins see everyone; salon staff must pass salonId and see the
    customers who have booked at that salon.
    """
    if not access.is_super_admin(actor):
        if not salon_id:
            raise ValidationError("Salon ID required for non-admin users")
        access.require_salon_staff(actor, salon_id)

    query = db.query(User)
    if salon_id:
        customer_ids = select(Booking.user_id).where(Booking.salon_id == salon_id)
        query = query.filter(User.id.in_(customer_ids))

    if search:
        query = query.filter(or_(
            User.full_name.ilike(f"%{search}%"),
            User.phone.contains(search)
        ))

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return UserListResponse(users=users, total=total, page=page, per_page=per_page)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_update: AdminUserUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Update any user (super admin only)"""
    access.require_super_admin(actor)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    for field, value in user_update.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Phone number already in use", code="PHONE_IN_USE")
    db.refresh(user)
    return user


@router.post("/roles", response_model=MessageResponse)
def change_role(
    payload: RoleChangeRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Add or remove an application role.

    Only super admins manage super_admin; other roles also need a salon admin.
    """
    if payload.role == access.SUPER_ADMIN and not access.is_super_admin(actor):
        raise PermissionDeniedError("Only super admins can manage super_admin role")
    if not access.is_super_admin(actor) and not any(
        m.role == access.SALON_ADMIN for m in actor.salon_memberships
    ):
        raise PermissionDeniedError("Salon admin access required")

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    existing = db.query(UserRole).filter(
        UserRole.user_id == payload.user_id,
        UserRole.role == payload.role
    ).first()

    if payload.action == "add":
        if not existing:
            db.add(UserRole(user_id=payload.user_id, role=payload.role))
            db.commit()
        return MessageResponse(message="Role added")

    if existing:
        db.delete(existing)
        db.commit()
    return MessageResponse(message="Role removed")
