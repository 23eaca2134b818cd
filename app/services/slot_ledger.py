"""
Slot ledger: the single source of truth for slot capacity.

Each operation is one conditional SQL statement so the check and the
mutation happen atomically in the database (``booked_count < capacity``
is evaluated by the store, not by Python). None of these functions commit;
they run inside the caller's transaction so the counter change and the
booking row write succeed or fail together.
"""
import logging
from sqlalchemy import update, delete
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, SlotFullError, SlotHasBookingsError, ConflictError
from app.models.models import Slot

logger = logging.getLogger(__name__)


def _slot_exists(db: Session, slot_id: int) -> bool:
    return db.query(Slot.id).filter(Slot.id == slot_id).first() is not None


def _cached(db: Session, slot_id: int):
    return db.identity_map.get(db.identity_key(Slot, slot_id))


def _refresh_cached(db: Session, slot_id: int) -> None:
    """Bulk UPDATEs bypass the identity map; expire any loaded copy of the slot."""
    slot = _cached(db, slot_id)
    if slot is not None:
        db.expire(slot)


def reserve(db: Session, slot_id: int) -> None:
    """
    Take one unit of capacity.

    Raises:
        SlotFullError: booked_count already equals capacity (no mutation)
        NotFoundError: slot does not exist
    """
    result = db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.booked_count < Slot.capacity)
        .values(booked_count=Slot.booked_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        _refresh_cached(db, slot_id)
        return

    if not _slot_exists(db, slot_id):
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    raise SlotFullError()


def release(db: Session, slot_id: int) -> None:
    """
    Give one unit of capacity back.

    A release against a zero counter means a booking and its slot have
    drifted apart; it is logged as a consistency error and the counter
    stays at zero.
    """
    result = db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.booked_count > 0)
        .values(booked_count=Slot.booked_count - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        _refresh_cached(db, slot_id)
        return

    if not _slot_exists(db, slot_id):
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    logger.error(f"Ledger inconsistency: release on slot {slot_id} with booked_count already 0")


def set_capacity(db: Session, slot_id: int, capacity: int) -> None:
    """Change a slot's capacity; never below the units already booked."""
    result = db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.booked_count <= capacity)
        .values(capacity=capacity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        _refresh_cached(db, slot_id)
        return

    if not _slot_exists(db, slot_id):
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    raise ConflictError(
        "Capacity cannot be lower than the number of booked places",
        code="CAPACITY_BELOW_BOOKED",
    )


def delete_slot(db: Session, slot_id: int) -> None:
    """Delete a slot only while nothing is booked against it."""
    result = db.execute(
        delete(Slot)
        .where(Slot.id == slot_id, Slot.booked_count == 0)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        slot = _cached(db, slot_id)
        if slot is not None:
            db.expunge(slot)
        return

    if not _slot_exists(db, slot_id):
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND")
    raise SlotHasBookingsError()
