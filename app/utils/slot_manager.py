"""
Slot generation utilities.

Slots are derived from a salon's weekly operating hours. Each open day is
cut into back-to-back windows of a fixed duration starting at the opening
time; a trailing window that would run past closing time is dropped.
Times are handled as minutes since midnight and stored as plain
time-of-day values, independent of the slot's calendar date.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConflictError, ValidationError
from app.models.models import Salon, Slot

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

DEFAULT_OPERATING_HOURS = {
    "monday": {"open": "09:00", "close": "18:00", "closed": False},
    "tuesday": {"open": "09:00", "close": "18:00", "closed": False},
    "wednesday": {"open": "09:00", "close": "18:00", "closed": False},
    "thursday": {"open": "09:00", "close": "18:00", "closed": False},
    "friday": {"open": "09:00", "close": "18:00", "closed": False},
    "saturday": {"open": "10:00", "close": "16:00", "closed": False},
    "sunday": {"open": "10:00", "close": "16:00", "closed": True},
}

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class SlotWindow:
    date: date
    start_time: time
    end_time: time


@dataclass
class SlotGenerationResult:
    created: int = 0
    skipped: List[SlotWindow] = field(default_factory=list)


def parse_clock(value) -> Optional[int]:
    """
    Parse "HH:MM" (or "HH:MM:SS") into minutes since midnight.

    Returns None for anything malformed.
    """
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def day_hours(operating_hours: Dict, day: date) -> Optional[Tuple[int, int]]:
    """Opening and closing minutes for a day, or None when closed or unusable."""
    config = (operating_hours or {}).get(DAYS_OF_WEEK[day.weekday()])
    if not isinstance(config, dict) or config.get("closed"):
        return None

    open_minutes = parse_clock(config.get("open"))
    close_minutes = parse_clock(config.get("close"))
    if open_minutes is None or close_minutes is None or close_minutes <= open_minutes:
        return None
    return open_minutes, close_minutes


def generate_slot_windows(
    operating_hours: Dict,
    start_date: date,
    end_date: date,
    duration_minutes: int
) -> List[SlotWindow]:
    """
    Compute every bookable window in [start_date, end_date].

    Args:
        operating_hours: weekday name -> {"open", "close", "closed"}
        start_date: first calendar day (inclusive)
        end_date: last calendar day (inclusive)
        duration_minutes: length of every window

    Returns:
        Windows ordered by date then start time
    """
    if duration_minutes <= 0:
        raise ValidationError("Slot duration must be positive")

    windows = []
    current = start_date
    while current <= end_date:
        hours = day_hours(operating_hours, current)
        if hours is not None:
            start, closing = hours
            while start + duration_minutes <= closing:
                windows.append(SlotWindow(
                    date=current,
                    start_time=minutes_to_time(start),
                    end_time=minutes_to_time(start + duration_minutes),
                ))
                start += duration_minutes
        current += timedelta(days=1)
    return windows


def validate_generation_request(start_date: date, end_date: date, duration_minutes: int, capacity: int) -> None:
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate", code="INVALID_DATE_RANGE")
    if (end_date - start_date).days + 1 > settings.SLOT_GENERATION_MAX_DAYS:
        raise ValidationError(
            f"Cannot generate slots for more than {settings.SLOT_GENERATION_MAX_DAYS} days at once",
            code="INVALID_DATE_RANGE"
        )
    if not settings.SLOT_DURATION_MIN <= duration_minutes <= settings.SLOT_DURATION_MAX:
        raise ValidationError(
            f"Slot duration must be between {settings.SLOT_DURATION_MIN} and {settings.SLOT_DURATION_MAX} minutes"
        )
    validate_capacity(capacity)


def validate_capacity(capacity: int) -> None:
    if not settings.SLOT_CAPACITY_MIN <= capacity <= settings.SLOT_CAPACITY_MAX:
        raise ValidationError(
            f"Capacity must be between {settings.SLOT_CAPACITY_MIN} and {settings.SLOT_CAPACITY_MAX}"
        )


def generate_slots(
    db: Session,
    salon: Salon,
    start_date: date,
    end_date: date,
    duration_minutes: int,
    capacity: int
) -> SlotGenerationResult:
    """
    Persist generated slots for a salon, skipping windows that already exist.

    Existing slots are never modified. Keys already present are reported
    in ``skipped``; a concurrent insert of the same key aborts the whole
    batch with a ConflictError.
    """
    validate_generation_request(start_date, end_date, duration_minutes, capacity)
    windows = generate_slot_windows(salon.operating_hours, start_date, end_date, duration_minutes)

    existing = {
        (row.date, row.start_time)
        for row in db.query(Slot.date, Slot.start_time).filter(
            Slot.salon_id == salon.id,
            Slot.date >= start_date,
            Slot.date <= end_date
        ).all()
    }

    result = SlotGenerationResult()
    for window in windows:
        if (window.date, window.start_time) in existing:
            result.skipped.append(window)
            continue
        db.add(Slot(
            salon_id=salon.id,
            date=window.date,
            start_time=window.start_time,
            end_time=window.end_time,
            capacity=capacity,
            booked_count=0,
        ))
        result.created += 1

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Slot generation for salon {salon.id} raced with another writer")
        raise ConflictError(
            "Some slots were created concurrently; retry the generation",
            code="SLOT_EXISTS"
        )

    logger.info(
        f"Generated {result.created} slots for salon {salon.id} "
        f"({start_date} to {end_date}, {len(result.skipped)} skipped)"
    )
    return result


def create_slot(
    db: Session,
    salon: Salon,
    slot_date: date,
    start_time: time,
    end_time: time,
    capacity: Optional[int] = None
) -> Slot:
    """Create a single slot by hand"""
    capacity = capacity if capacity is not None else salon.default_slot_capacity
    validate_capacity(capacity)
    if time_to_minutes(end_time) <= time_to_minutes(start_time):
        raise ValidationError("Slot end time must be after its start time")

    slot = Slot(
        salon_id=salon.id,
        date=slot_date,
        start_time=start_time,
        end_time=end_time,
        capacity=capacity,
        booked_count=0,
    )
    db.add(slot)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A slot already starts at this time", code="SLOT_EXISTS")
    db.refresh(slot)
    return slot


def list_slots(db: Session, salon_id: int, slot_date: date) -> List[Slot]:
    """All slots of a salon on one day, earliest first"""
    return db.query(Slot).filter(
        Slot.salon_id == salon_id,
        Slot.date == slot_date
    ).order_by(Slot.start_time.asc()).all()
