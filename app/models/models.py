from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time, ForeignKey, Text, Boolean, Numeric, JSON,
    UniqueConstraint, CheckConstraint, Index, text
)
from sqlalchemy.orm import relationship
from datetime import datetime
from app.core.database import Base


class BookingStatus:
    """Booking lifecycle states"""
    BOOKED = "booked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    ACTIVE = (BOOKED, IN_PROGRESS)
    TERMINAL = (COMPLETED, CANCELLED, NO_SHOW)
    ALL = (BOOKED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW)


class SalonStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"

    ALL = (PENDING, APPROVED, REJECTED, SUSPENDED)


class PaymentStatus:
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    ALL = (PENDING, VERIFIED, REJECTED)


# ==================== IDENTITY ====================

class User(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String, unique=True, index=True, nullable=True)  # E.164
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=False)
    gender = Column(String, nullable=True)  # male, female, other
    avatar_url = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    memberships = relationship(
        "SalonMembership",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="SalonMembership.user_id",
    )
    bookings = relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)  # super_admin, salon_admin, salon_staff, user
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
    )


class OtpSession(Base):
    """One outstanding OTP challenge for a phone number"""
    __tablename__ = "otp_sessions"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String, nullable=False, index=True)
    otp_hash = Column(String, nullable=False)
    session_token = Column(String, nullable=False, unique=True, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    ip_address = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RateLimit(Base):
    """Fixed-window request counter per (identifier, action)"""
    __tablename__ = "rate_limits"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, nullable=False)
    action = Column(String, nullable=False)
    count = Column(Integer, default=1, nullable=False)
    window_start = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("identifier", "action", name="uq_rate_limit"),
    )


# ==================== CATALOG ====================

class Salon(Base):
    __tablename__ = "salons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)  # Unique identifier for salon URL
    description = Column(Text, nullable=True)
    address = Column(String, nullable=False)
    city = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    image_url = Column(String, nullable=True)

    # Social / contact links
    website_url = Column(String, nullable=True)
    facebook_page = Column(String, nullable=True)
    instagram_page = Column(String, nullable=True)
    whatsapp_number = Column(String, nullable=True)

    # Contract bookkeeping
    contract_amount = Column(Numeric(10, 2), nullable=True)
    next_due_date = Column(DateTime, nullable=True)

    # {"monday": {"open": "09:00", "close": "18:00", "closed": false}, ...}
    operating_hours = Column(JSON, nullable=False, default=dict)
    default_slot_capacity = Column(Integer, nullable=False, default=4)

    status = Column(String, nullable=False, default=SalonStatus.PENDING, index=True)
    created_by = Column(Integer, ForeignKey("user_profiles.id", ondelete="RESTRICT"), nullable=False)
    approved_by = Column(Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    memberships = relationship("SalonMembership", back_populates="salon", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="salon", cascade="all, delete-orphan")
    slots = relationship("Slot", back_populates="salon", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="salon")
    payments = relationship("SalonPayment", back_populates="salon", cascade="all, delete-orphan")


class SalonMembership(Base):
    __tablename__ = "salon_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)  # salon_admin, salon_staff
    invited_by = Column(Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])
    salon = relationship("Salon", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "salon_id", name="uq_salon_membership"),
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=False, default=30)
    show_price = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    salon = relationship("Salon", back_populates="services")
    bookings = relationship("Booking", back_populates="service")


# ==================== SLOTS & BOOKINGS ====================

class Slot(Base):
    """
    A fixed time window on one day with finite capacity.

    booked_count is only changed through app.services.slot_ledger, which
    issues conditional UPDATE statements inside the caller's transaction.
    """
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False, default=3)
    booked_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    salon = relationship("Salon", back_populates="slots")
    bookings = relationship("Booking", back_populates="slot")

    __table_args__ = (
        UniqueConstraint("salon_id", "date", "start_time", name="uq_slot_salon_date_start"),
        CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="ck_slot_booked_count"),
    )

    @property
    def available(self) -> int:
        return self.capacity - self.booked_count


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user_profiles.id", ondelete="RESTRICT"), nullable=False, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="RESTRICT"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False)
    # cancelled bookings outlive their slot; the ledger only deletes slots with booked_count == 0
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="SET NULL"), nullable=True, index=True)
    staff_id = Column(Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # start + service duration, may run past the slot window
    status = Column(String, nullable=False, default=BookingStatus.BOOKED, index=True)
    qr_code = Column(String, unique=True, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    service_started_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="bookings", foreign_keys=[user_id])
    staff = relationship("User", foreign_keys=[staff_id])
    salon = relationship("Salon", back_populates="bookings")
    service = relationship("Service", back_populates="bookings")
    slot = relationship("Slot", back_populates="bookings")

    __table_args__ = (
        # one active booking per customer and slot
        Index(
            "uq_bookings_active_user_slot", "user_id", "slot_id",
            unique=True,
            postgresql_where=text("status IN ('booked', 'in_progress')"),
            sqlite_where=text("status IN ('booked', 'in_progress')"),
        ),
    )


# ==================== BILLING ====================

class SalonPayment(Base):
    """Payment proof submitted by a salon admin; verifying it extends next_due_date"""
    __tablename__ = "salon_payments"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_paid = Column(Numeric(10, 2), nullable=False)
    months_paid = Column(Integer, nullable=False, default=1)
    screenshot_url = Column(String, nullable=False)
    status = Column(String, nullable=False, default=PaymentStatus.PENDING, index=True)
    verified_by = Column(Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    salon = relationship("Salon", back_populates="payments")
