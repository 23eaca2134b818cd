import logging
import re
from datetime import date, datetime
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core import access
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import NotFoundError, ValidationError
from app.core.security import get_current_actor, get_optional_actor
from app.core.storage import folder_for, upload_image, validate_image_file
from app.models.models import Booking, Salon, SalonMembership, SalonStatus, Service, Slot
from app.schemas.schemas import (
    MessageResponse, SalonApproval, SalonCreate, SalonListResponse, SalonResponse, SalonUpdate,
    ServiceCreate, ServiceResponse, ServiceUpdate, SlotCapacityUpdate, SlotCreate,
    SlotGenerateRequest, SlotGenerateResponse, SlotResponse, SlotWindowResponse
)
from app.services import slot_ledger
from app.utils.slot_manager import (
    DAYS_OF_WEEK, DEFAULT_OPERATING_HOURS, create_slot, generate_slots, list_slots, validate_capacity
)

logger = logging.getLogger(__name__)

router = APIRouter()

CONTACT_FIELDS = ("phone", "email", "facebook_page", "instagram_page", "whatsapp_number")
CONTRACT_FIELDS = ("contract_amount", "next_due_date")
APPROVAL_STATUS = {
    "approve": SalonStatus.APPROVED,
    "reject": SalonStatus.REJECTED,
    "suspend": SalonStatus.SUSPENDED,
}


def generate_slug(name: str, db: Session) -> str:
    """Generate a unique slug from salon name"""
    base_slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-') or "salon"

    slug = base_slug
    counter = 1
    while db.query(Salon.id).filter(Salon.slug == slug).first():
        slug = f"{base_slug}-{counter}"
        counter += 1

    return slug


def serialize_salon(salon: Salon, actor: Optional[Actor]) -> SalonResponse:
    """Contact details are only shown to the salon's own staff and super admins"""
    data = SalonResponse.model_validate(salon)
    if not access.can_view_salon_contact(actor, salon.id):
        data = data.model_copy(update={field: None for field in CONTACT_FIELDS})
    return data


def dump_operating_hours(hours) -> dict:
    unknown = set(hours) - set(DAYS_OF_WEEK)
    if unknown:
        raise ValidationError(f"Unknown weekday(s) in operating hours: {', '.join(sorted(unknown))}")
    return {day: config.model_dump() for day, config in hours.items()}


def get_salon_or_404(db: Session, salon_id: int) -> Salon:
    salon = db.query(Salon).filter(Salon.id == salon_id).first()
    if not salon:
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")
    return salon


def get_visible_salon(db: Session, salon_id: int, actor: Optional[Actor]) -> Salon:
    """Unapproved salons are hidden from everyone but their staff and super admins"""
    salon = get_salon_or_404(db, salon_id)
    if salon.status != SalonStatus.APPROVED and not access.is_salon_staff(actor, salon.id):
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")
    return salon


def get_salon_service(db: Session, salon_id: int, service_id: int) -> Service:
    service = db.query(Service).filter(Service.id == service_id, Service.salon_id == salon_id).first()
    if not service:
        raise NotFoundError("Service not found", code="SERVICE_NOT_FOUND")
    return service


def get_salon_slot(db: Session, salon_id: int, slot_id: int) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id, Slot.salon_id == salon_id).first()
    if not slot:
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    return slot


# ==================== SALONS ====================

@router.get("/", response_model=SalonListResponse)
def list_salons(
    status_filter: Optional[str] = Query(None, alias="status"),
    city: Optional[str] = None,
    search: Optional[str] = None,
    include_own: bool = Query(False, alias="includeOwn"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="limit"),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: Session = Depends(get_db)
):
    """
    List salons.

    The public sees approved salons only; with includeOwn a signed-in user
    also sees the salons they created. Super admins may filter by status.
    """
    query = db.query(Salon)

    if not access.is_super_admin(actor):
        if include_own and actor:
            query = query.filter(or_(
                Salon.status == SalonStatus.APPROVED,
                Salon.created_by == actor.user_id
            ))
        else:
            query = query.filter(Salon.status == SalonStatus.APPROVED)
    elif status_filter:
        if status_filter not in SalonStatus.ALL:
            raise ValidationError(f"Unknown salon status: {status_filter}")
        query = query.filter(Salon.status == status_filter)

    if city:
        query = query.filter(Salon.city.ilike(f"%{city}%"))
    if search:
        query = query.filter(or_(
            Salon.name.ilike(f"%{search}%"),
            Salon.description.ilike(f"%{search}%")
        ))

    total = query.count()
    salons = query.order_by(Salon.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return SalonListResponse(
        salons=[serialize_salon(s, actor) for s in salons],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/name/{slug}", response_model=SalonResponse)
def get_salon_by_slug(
    slug: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: Session = Depends(get_db)
):
    salon = db.query(Salon).filter(Salon.slug == slug).first()
    if not salon:
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")
    return serialize_salon(get_visible_salon(db, salon.id, actor), actor)


@router.get("/{salon_id}", response_model=SalonResponse)
def get_salon(
    salon_id: int,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: Session = Depends(get_db)
):
    return serialize_salon(get_visible_salon(db, salon_id, actor), actor)


@router.post("/", response_model=SalonResponse, status_code=status.HTTP_201_CREATED)
def create_salon(
    salon_data: SalonCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Register a salon. It starts out pending until a super admin approves
    it, and its creator becomes the salon admin.
    """
    data = salon_data.model_dump(exclude={"operating_hours"})
    if not access.is_super_admin(actor):
        for field in CONTRACT_FIELDS:
            data.pop(field, None)

    salon = Salon(
        **data,
        slug=generate_slug(salon_data.name, db),
        operating_hours=(
            dump_operating_hours(salon_data.operating_hours)
            if salon_data.operating_hours else dict(DEFAULT_OPERATING_HOURS)
        ),
        status=SalonStatus.PENDING,
        created_by=actor.user_id,
    )
    db.add(salon)
    db.flush()
    db.add(SalonMembership(user_id=actor.user_id, salon_id=salon.id, role=access.SALON_ADMIN))
    db.commit()
    db.refresh(salon)

    logger.info(f"Salon {salon.id} ({salon.slug}) created by user {actor.user_id}")
    return SalonResponse.model_validate(salon)


@router.put("/{salon_id}", response_model=SalonResponse)
def update_salon(
    salon_id: int,
    salon_update: SalonUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Update salon details (salon admin); contract terms are super admin only"""
    salon = get_salon_or_404(db, salon_id)
    access.require_salon_admin(actor, salon.id)

    update_data = salon_update.model_dump(exclude_unset=True)
    if not access.is_super_admin(actor) and any(f in update_data for f in CONTRACT_FIELDS):
        raise ValidationError("Only super admins can change contract terms")

    if "operating_hours" in update_data:
        if salon_update.operating_hours is None:
            raise ValidationError("Operating hours cannot be empty")
        update_data["operating_hours"] = dump_operating_hours(salon_update.operating_hours)

    for field, value in update_data.items():
        setattr(salon, field, value)

    db.commit()
    db.refresh(salon)
    return serialize_salon(salon, actor)


@router.post("/{salon_id}/approve", response_model=SalonResponse)
def review_salon(
    salon_id: int,
    approval: SalonApproval,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Approve, reject or suspend a salon (super admin)"""
    access.require_super_admin(actor)
    salon = get_salon_or_404(db, salon_id)

    salon.status = APPROVAL_STATUS[approval.action]
    if approval.action == "approve":
        salon.approved_by = actor.user_id
        salon.approved_at = datetime.utcnow()

    db.commit()
    db.refresh(salon)
    logger.info(f"Salon {salon.id} set to {salon.status} by user {actor.user_id}: {approval.reason or '-'}")
    return serialize_salon(salon, actor)


@router.post("/{salon_id}/image", response_model=SalonResponse)
def upload_salon_image(
    salon_id: int,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Upload and set the salon's cover image"""
    salon = get_salon_or_404(db, salon_id)
    access.require_salon_admin(actor, salon.id)

    content = file.file.read()
    is_valid, error = validate_image_file(file.content_type, len(content))
    if not is_valid:
        raise ValidationError(error)

    file.file.seek(0)
    salon.image_url = upload_image(file.file, file.filename or "salon-image", folder=folder_for("salon", actor.user_id))
    db.commit()
    db.refresh(salon)
    return serialize_salon(salon, actor)


# ==================== SERVICES ====================

@router.get("/{salon_id}/services", response_model=List[ServiceResponse])
def list_services(
    salon_id: int,
    include_inactive: bool = Query(False, alias="includeInactive"),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: Session = Depends(get_db)
):
    """Active services by name; staff may ask for inactive ones too"""
    salon = get_visible_salon(db, salon_id, actor)
    query = db.query(Service).filter(Service.salon_id == salon.id)
    if not (include_inactive and access.is_salon_staff(actor, salon.id)):
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name.asc()).all()


@router.post("/{salon_id}/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    salon_id: int,
    service_data: ServiceCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    salon = get_salon_or_404(db, salon_id)
    access.require_salon_admin(actor, salon.id)

    service = Service(salon_id=salon.id, **service_data.model_dump())
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@router.put("/{salon_id}/services/{service_id}", response_model=ServiceResponse)
def update_service(
    salon_id: int,
    service_id: int,
    service_update: ServiceUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    access.require_salon_admin(actor, salon_id)
    service = get_salon_service(db, salon_id, service_id)

    for field, value in service_update.model_dump(exclude_unset=True).items():
        setattr(service, field, value)

    db.commit()
    db.refresh(service)
    return service


@router.delete("/{salon_id}/services/{service_id}", response_model=MessageResponse)
def delete_service(
    salon_id: int,
    service_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Delete a service; one with booking history is deactivated instead"""
    access.require_salon_admin(actor, salon_id)
    service = get_salon_service(db, salon_id, service_id)

    has_bookings = db.query(Booking.id).filter(Booking.service_id == service.id).first()
    if has_bookings:
        service.is_active = False
        db.commit()
        return MessageResponse(message="Service has bookings and was deactivated")

    db.delete(service)
    db.commit()
    return MessageResponse(message="Service deleted")


# ==================== SLOTS ====================

@router.get("/{salon_id}/slots", response_model=List[SlotResponse])
def get_slots(
    salon_id: int,
    slot_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db)
):
    """Slots for one day with remaining capacity"""
    salon = get_salon_or_404(db, salon_id)
    return list_slots(db, salon.id, slot_date)


@router.post("/{salon_id}/slots/generate", response_model=SlotGenerateResponse)
def generate_salon_slots(
    salon_id: int,
    request: SlotGenerateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Bulk-create slots from the salon's operating hours; existing ones are skipped"""
    access.require_salon_admin(actor, salon_id)
    salon = get_salon_or_404(db, salon_id)

    capacity = request.default_capacity if request.default_capacity is not None else salon.default_slot_capacity
    result = generate_slots(
        db,
        salon,
        start_date=request.start_date,
        end_date=request.end_date,
        duration_minutes=request.slot_duration_minutes,
        capacity=capacity,
    )

    message = f"Generated {result.created} slots successfully."
    if result.skipped:
        message += f" Skipped {len(result.skipped)} existing slots."
    return SlotGenerateResponse(
        slots_created=result.created,
        skipped=[SlotWindowResponse.model_validate(w) for w in result.skipped],
        message=message,
    )


@router.post("/{salon_id}/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def add_slot(
    salon_id: int,
    slot_data: SlotCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    access.require_salon_admin(actor, salon_id)
    salon = get_salon_or_404(db, salon_id)
    return create_slot(
        db, salon, slot_data.date, slot_data.start_time, slot_data.end_time, slot_data.capacity
    )


@router.put("/{salon_id}/slots/{slot_id}", response_model=SlotResponse)
def update_slot_capacity(
    salon_id: int,
    slot_id: int,
    update: SlotCapacityUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Change capacity; it can never drop below what is already booked"""
    access.require_salon_admin(actor, salon_id)
    validate_capacity(update.capacity)
    slot = get_salon_slot(db, salon_id, slot_id)

    try:
        slot_ledger.set_capacity(db, slot.id, update.capacity)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(slot)
    return slot


@router.delete("/{salon_id}/slots/{slot_id}", response_model=MessageResponse)
def remove_slot(
    salon_id: int,
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Delete a slot only while nothing is booked against it"""
    access.require_salon_admin(actor, salon_id)
    slot = get_salon_slot(db, salon_id, slot_id)

    try:
        slot_ledger.delete_slot(db, slot.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return MessageResponse(message="Slot deleted")
