from datetime import date
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import ValidationError
from app.core.security import get_current_actor
from app.schemas.schemas import (
    BookingComplete, BookingCreate, BookingListResponse, BookingResponse, BookingUpdate
)
from app.services import booking_service
from app.services.notification_service import deliver_booking_confirmation

router = APIRouter()


@router.get("/", response_model=BookingListResponse)
def list_bookings(
    salon_id: Optional[int] = Query(None, alias="salonId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    on_date: Optional[date] = Query(None, alias="date"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="limit"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    bookings, total = booking_service.list_bookings(
        db,
        actor,
        salon_id=salon_id,
        status=status_filter,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page,
    )
    return BookingListResponse(bookings=bookings, total=total, page=page, per_page=per_page)


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Book a slot for the current user.

    The confirmation SMS goes out after the response; its failure does not
    affect the booking.
    """
    booking = booking_service.create_booking(
        db,
        actor,
        salon_id=booking_data.salon_id,
        service_id=booking_data.service_id,
        slot_id=booking_data.slot_id,
        booking_date=booking_data.booking_date,
        start_time=booking_data.start_time,
        staff_id=booking_data.staff_id,
        notes=booking_data.notes,
    )
    background_tasks.add_task(deliver_booking_confirmation, booking_service.build_confirmation(db, booking))
    return booking


@router.get("/qr/{qr_code}", response_model=BookingResponse)
def get_booking_by_qr(
    qr_code: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Look up a booking from its check-in code (salon staff)"""
    return booking_service.get_booking_by_qr(db, actor, qr_code.upper())


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return booking_service.get_booking(db, actor, booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return booking_service.cancel_booking(db, actor, booking_id)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    payload: Optional[BookingComplete] = Body(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Mark a booking completed, or no_show with markNoShow=true"""
    payload = payload or BookingComplete()
    return booking_service.complete_booking(
        db, actor, booking_id, mark_no_show=payload.mark_no_show, qr_code=payload.qr_code
    )


@router.patch("/{booking_id}/update", response_model=BookingResponse)
def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Staff actions on a booked appointment: start the service
    (serviceStarted=true) or reschedule to another slot/service.
    """
    reschedule = any(v is not None for v in (payload.slot_id, payload.service_id, payload.booking_date))

    if payload.service_started:
        if reschedule:
            raise ValidationError("Cannot start a service and reschedule in the same request")
        return booking_service.start_service(db, actor, booking_id)

    if not reschedule:
        raise ValidationError("Nothing to update")

    return booking_service.reschedule_booking(
        db,
        actor,
        booking_id,
        slot_id=payload.slot_id,
        service_id=payload.service_id,
        booking_date=payload.booking_date,
    )
