"""
Booking lifecycle.

    booked      -> in_progress | cancelled | completed | no_show
    in_progress -> completed | no_show
    completed, cancelled, no_show are terminal

Every transition that touches capacity runs in one database transaction
together with the slot ledger call: create reserves, cancel releases,
reschedule releases the old slot and reserves the new one. Completion and
no-show keep the unit consumed for the day. Status writes are conditional
UPDATEs on the expected source status, so two racing transitions cannot
both succeed.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import access
from app.core.access import Actor
from app.core.config import settings
from app.core.errors import (
    ConflictError, DuplicateBookingError, InvalidTransitionError, NotFoundError,
    PermissionDeniedError, ValidationError
)
from app.models.models import (
    Booking, BookingStatus, Salon, SalonMembership, SalonStatus, Service, Slot, User
)
from app.services import slot_ledger
from app.utils.slot_manager import MINUTES_PER_DAY, minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

ACTIVE_BOOKING_INDEX = "uq_bookings_active_user_slot"
QR_CODE_INDEX = "ix_bookings_qr_code"

ALLOWED_TRANSITIONS = {
    BookingStatus.BOOKED: (
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    ),
    BookingStatus.IN_PROGRESS: (BookingStatus.COMPLETED, BookingStatus.NO_SHOW),
    BookingStatus.COMPLETED: (),
    BookingStatus.CANCELLED: (),
    BookingStatus.NO_SHOW: (),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, ())


def source_states(target: str) -> List[str]:
    return [state for state, targets in ALLOWED_TRANSITIONS.items() if target in targets]


@dataclass
class BookingConfirmation:
    """Everything the SMS sender needs, detached from the DB session"""
    phone: Optional[str]
    customer_name: str
    date_time: datetime
    salon_name: str
    admin_phone: Optional[str] = None


def generate_qr_code() -> str:
    return secrets.token_hex(8).upper()


# ==================== LOOKUPS ====================

def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found", code="BOOKING_NOT_FOUND")
    return booking


def _load_bookable_service(db: Session, service_id: int, salon_id: int) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise NotFoundError("Service not found", code="SERVICE_NOT_FOUND")
    if service.salon_id != salon_id:
        raise ValidationError("Service does not belong to this salon")
    if not service.is_active:
        raise ValidationError("Service unavailable", code="SERVICE_UNAVAILABLE")
    return service


def _load_salon_slot(db: Session, slot_id: int, salon_id: int) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id).first()
    if not slot:
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    if slot.salon_id != salon_id:
        raise ValidationError("Slot does not belong to this salon")
    return slot


def _has_active_booking(db: Session, user_id: int, slot_id: int, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Booking.id).filter(
        Booking.user_id == user_id,
        Booking.slot_id == slot_id,
        Booking.status.in_(BookingStatus.ACTIVE)
    )
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query.first() is not None


def _violates(exc: IntegrityError, index_name: str, *columns: str) -> bool:
    """
    Whether a unique index on bookings rejected the write.

    PostgreSQL names the index in the error; SQLite lists its columns.
    """
    message = str(exc.orig)
    return index_name in message or ", ".join(f"bookings.{c}" for c in columns) in message


def _is_duplicate_active_booking(exc: IntegrityError) -> bool:
    return _violates(exc, ACTIVE_BOOKING_INDEX, "user_id", "slot_id")


def _end_time(start: time, duration_minutes: int) -> time:
    """A booking's end on the same day; services may not run past midnight."""
    end_minutes = time_to_minutes(start) + duration_minutes
    if end_minutes >= MINUTES_PER_DAY:
        raise ValidationError("Service would run past midnight", code="ENDS_AFTER_MIDNIGHT")
    return minutes_to_time(end_minutes)


def _require_staff(actor: Actor, booking: Booking, message: str = "Salon staff access required") -> None:
    if not access.is_salon_staff(actor, booking.salon_id):
        raise PermissionDeniedError(message)


def _transition(db: Session, booking: Booking, target: str, message: str, **values) -> None:
    """Move a booking to ``target`` only if it is still in a legal source state."""
    if not can_transition(booking.status, target):
        raise InvalidTransitionError(message)

    result = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status.in_(source_states(target)))
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Someone else moved it between our read and this write
        raise InvalidTransitionError(message)
    db.expire(booking)


# ==================== READS ====================

def get_booking(db: Session, actor: Actor, booking_id: int) -> Booking:
    booking = _get_booking(db, booking_id)
    if not (
        access.is_owner(actor, booking.user_id)
        or access.is_salon_staff(actor, booking.salon_id)
    ):
        raise PermissionDeniedError("Access denied")
    return booking


def get_booking_by_qr(db: Session, actor: Actor, qr_code: str) -> Booking:
    """Staff scanning a check-in code"""
    booking = db.query(Booking).filter(Booking.qr_code == qr_code).first()
    if not booking:
        raise NotFoundError("Booking not found", code="BOOKING_NOT_FOUND")
    _require_staff(actor, booking, "Access denied")
    return booking


def list_bookings(
    db: Session,
    actor: Actor,
    salon_id: Optional[int] = None,
    status: Optional[str] = None,
    on_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    per_page: int = 20
) -> Tuple[List[Booking], int]:
    """
    Bookings visible to the actor, newest booking date first.

    - Super admin: everything (optionally one salon)
    - Salon members: their salons' bookings plus their own
    - Everyone else: their own bookings
    """
    query = db.query(Booking)

    if access.is_super_admin(actor):
        if salon_id:
            query = query.filter(Booking.salon_id == salon_id)
    else:
        member_salons = actor.salon_ids
        if salon_id and salon_id in member_salons:
            query = query.filter(Booking.salon_id == salon_id)
        elif member_salons:
            query = query.filter(or_(
                Booking.user_id == actor.user_id,
                Booking.salon_id.in_(member_salons)
            ))
        else:
            query = query.filter(Booking.user_id == actor.user_id)

    if status and status != "all":
        if status not in BookingStatus.ALL:
            raise ValidationError(f"Unknown booking status: {status}")
        query = query.filter(Booking.status == status)

    if on_date:
        query = query.filter(Booking.booking_date == on_date)
    else:
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)

    total = query.count()
    bookings = query.order_by(
        Booking.booking_date.desc(), Booking.start_time.desc()
    ).offset((page - 1) * per_page).limit(per_page).all()
    return bookings, total


# ==================== TRANSITIONS ====================

def create_booking(
    db: Session,
    actor: Actor,
    salon_id: int,
    service_id: int,
    slot_id: int,
    booking_date: date,
    start_time: Optional[time] = None,
    staff_id: Optional[int] = None,
    notes: Optional[str] = None
) -> Booking:
    """
    Place a booking for the actor and take one unit of slot capacity.

    Guards: salon approved, service active, slot on that salon and date,
    no other active booking by this user for the slot, capacity left.
    """
    user = db.query(User).filter(User.id == actor.user_id).first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    salon = db.query(Salon).filter(Salon.id == salon_id).first()
    if not salon:
        raise NotFoundError("Salon not found", code="SALON_NOT_FOUND")
    if salon.status != SalonStatus.APPROVED:
        raise ValidationError("Salon unavailable", code="SALON_UNAVAILABLE")

    service = _load_bookable_service(db, service_id, salon.id)
    slot = _load_salon_slot(db, slot_id, salon.id)

    if booking_date != slot.date:
        raise ValidationError("Booking date does not match the slot date")

    start = start_time or slot.start_time
    if not time_to_minutes(slot.start_time) <= time_to_minutes(start) < time_to_minutes(slot.end_time):
        raise ValidationError("Start time must fall within the slot")

    if staff_id is not None:
        is_member = db.query(SalonMembership.id).filter(
            SalonMembership.salon_id == salon.id,
            SalonMembership.user_id == staff_id
        ).first()
        if not is_member:
            raise ValidationError("Staff member does not work at this salon")

    if _has_active_booking(db, user.id, slot.id):
        raise DuplicateBookingError()

    end = _end_time(start, service.duration_minutes)

    for attempt in range(1, settings.QR_CODE_ATTEMPTS + 1):
        try:
            slot_ledger.reserve(db, slot_id)
            booking = Booking(
                user_id=actor.user_id,
                salon_id=salon_id,
                service_id=service_id,
                slot_id=slot_id,
                staff_id=staff_id,
                booking_date=booking_date,
                start_time=start,
                end_time=end,
                status=BookingStatus.BOOKED,
                qr_code=generate_qr_code(),
                notes=notes,
            )
            db.add(booking)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if _is_duplicate_active_booking(exc):
                # a concurrent request by the same customer got there first
                raise DuplicateBookingError()
            if not _violates(exc, QR_CODE_INDEX, "qr_code"):
                raise
            logger.warning(f"Check-in code collision creating booking on slot {slot_id} (attempt {attempt})")
            continue
        except Exception:
            db.rollback()
            raise

        db.refresh(booking)
        logger.info(f"Booking {booking.id} created by user {actor.user_id} on slot {slot_id}")
        return booking

    raise ConflictError("Could not allocate a unique check-in code, please retry", code="QR_CODE_COLLISION")


def cancel_booking(db: Session, actor: Actor, booking_id: int) -> Booking:
    """Owner, salon staff or super admin cancels a booked appointment and frees its unit"""
    booking = _get_booking(db, booking_id)

    if not (
        access.is_owner(actor, booking.user_id)
        or access.is_salon_staff(actor, booking.salon_id)
    ):
        raise PermissionDeniedError("Access denied")

    slot_id = booking.slot_id
    try:
        _transition(
            db, booking, BookingStatus.CANCELLED,
            "Only booked appointments can be cancelled",
            cancelled_at=datetime.utcnow()
        )
        slot_ledger.release(db, slot_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(f"Booking {booking.id} cancelled by user {actor.user_id}")
    return booking


def start_service(db: Session, actor: Actor, booking_id: int) -> Booking:
    booking = _get_booking(db, booking_id)
    _require_staff(actor, booking, "Unauthorized: Salon staff access required")

    try:
        _transition(
            db, booking, BookingStatus.IN_PROGRESS,
            'Service can only be started for "booked" appointments',
            service_started_at=datetime.utcnow()
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(f"Booking {booking.id} started by user {actor.user_id}")
    return booking


def complete_booking(
    db: Session,
    actor: Actor,
    booking_id: int,
    mark_no_show: bool = False,
    qr_code: Optional[str] = None
) -> Booking:
    """
    Check a customer in (completed) or mark them absent (no_show).

    The slot unit stays consumed either way.
    """
    booking = _get_booking(db, booking_id)
    _require_staff(actor, booking)

    if qr_code is not None and qr_code.upper() != booking.qr_code:
        raise ValidationError("QR code does not match this booking", code="QR_CODE_MISMATCH")

    target = BookingStatus.NO_SHOW if mark_no_show else BookingStatus.COMPLETED
    try:
        _transition(
            db, booking, target,
            "Only booked appointments can be completed",
            completed_at=datetime.utcnow(),
            completed_by=actor.user_id
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(f"Booking {booking.id} marked {target} by user {actor.user_id}")
    return booking


def reschedule_booking(
    db: Session,
    actor: Actor,
    booking_id: int,
    slot_id: Optional[int] = None,
    service_id: Optional[int] = None,
    booking_date: Optional[date] = None
) -> Booking:
    """
    Move a booked appointment to another slot and/or service.

    A slot change is a paired release + reserve committed together with the
    booking update; if the new slot is full nothing changes.
    """
    booking = _get_booking(db, booking_id)
    _require_staff(actor, booking, "Unauthorized: Salon staff access required")

    if slot_id is None and service_id is None and booking_date is None:
        raise ValidationError("Nothing to update")
    if booking.status != BookingStatus.BOOKED:
        raise InvalidTransitionError("Only booked appointments can be rescheduled")

    service = booking.service
    if service_id is not None and service_id != booking.service_id:
        service = _load_bookable_service(db, service_id, booking.salon_id)

    old_slot_id = booking.slot_id
    slot_changes = slot_id is not None and slot_id != old_slot_id
    slot = _load_salon_slot(db, slot_id, booking.salon_id) if slot_changes else booking.slot

    if booking_date is not None and booking_date != slot.date:
        raise ValidationError("Booking date does not match the slot date")

    if slot_changes and _has_active_booking(db, booking.user_id, slot.id, exclude_id=booking.id):
        raise DuplicateBookingError("Customer already has an active booking for this slot")

    start = slot.start_time if slot_changes else booking.start_time
    values = {
        "service_id": service.id,
        "slot_id": slot.id,
        "booking_date": slot.date,
        "start_time": start,
        "end_time": _end_time(start, service.duration_minutes),
    }

    try:
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.BOOKED)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransitionError("Only booked appointments can be rescheduled")
        if slot_changes:
            slot_ledger.release(db, old_slot_id)
            slot_ledger.reserve(db, slot.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_duplicate_active_booking(exc):
            raise DuplicateBookingError("Customer already has an active booking for this slot")
        raise
    except Exception:
        db.rollback()
        raise

    db.expire(booking)
    db.refresh(booking)
    logger.info(
        f"Booking {booking.id} rescheduled by user {actor.user_id} "
        f"(slot {old_slot_id} -> {booking.slot_id}, service {booking.service_id})"
    )
    return booking


# ==================== NOTIFICATIONS ====================

def build_confirmation(db: Session, booking: Booking) -> BookingConfirmation:
    """Snapshot the data for the post-commit confirmation SMS"""
    admin = db.query(User).join(
        SalonMembership, SalonMembership.user_id == User.id
    ).filter(
        SalonMembership.salon_id == booking.salon_id,
        SalonMembership.role == access.SALON_ADMIN
    ).order_by(SalonMembership.created_at.asc()).first()

    return BookingConfirmation(
        phone=booking.user.phone,
        customer_name=booking.user.full_name,
        date_time=datetime.combine(booking.booking_date, booking.start_time),
        salon_name=booking.salon.name,
        admin_phone=admin.phone if admin else None,
    )
