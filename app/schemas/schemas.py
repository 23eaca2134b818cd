from __future__ import annotations
import re
from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime, time
from typing import Annotated, Any, Optional, List, Dict, Literal

E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")


def validate_e164(value: str) -> str:
    value = value.strip()
    if not E164_PATTERN.match(value):
        raise ValueError("Phone number must be in E.164 format (e.g. +61412345678)")
    return value


Phone = Annotated[str, AfterValidator(validate_e164)]


class CamelModel(BaseModel):
    """Accepts both camelCase and snake_case input, renders camelCase"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Auth schemas
class SendOtpRequest(CamelModel):
    phone: Phone
    mode: Literal["login", "signup"] = "login"


class SendOtpResponse(CamelModel):
    success: bool = True
    message: str
    token: str
    expires_in: int


class VerifyOtpRequest(CamelModel):
    phone: Phone
    otp: str = Field(min_length=4, max_length=10)
    token: str
    mode: Literal["login", "signup"] = "login"
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    gender: Optional[Literal["male", "female", "other"]] = None


class MembershipClaim(CamelModel):
    salon_id: int
    role: str


# User schemas
class UserSummary(CamelModel):
    id: int
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class UserResponse(CamelModel):
    id: int
    phone: Optional[str] = None
    email: Optional[str] = None
    full_name: str
    gender: Optional[str] = None
    avatar_url: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    success: bool = True
    token: str
    user: UserResponse
    roles: List[str] = []
    salon_memberships: List[MembershipClaim] = []
    message: str = "Login successful"


class MeResponse(CamelModel):
    user: UserResponse
    roles: List[str] = []
    salon_memberships: List[MembershipClaim] = []


class UserUpdate(CamelModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    avatar_url: Optional[str] = None
    description: Optional[str] = None


class AdminUserUpdate(UserUpdate):
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_e164(v) if v is not None else v


class UserListResponse(CamelModel):
    users: List[UserResponse]
    total: int
    page: int
    per_page: int


class RoleChangeRequest(CamelModel):
    user_id: int
    role: Literal["super_admin", "salon_admin", "salon_staff", "user"]
    action: Literal["add", "remove"] = "add"


class MembershipResponse(CamelModel):
    id: int
    salon_id: int
    role: str
    salon_name: Optional[str] = None
    salon_slug: Optional[str] = None
    created_at: Optional[datetime] = None


# Salon schemas
class OperatingDay(BaseModel):
    open: str = "09:00"
    close: str = "18:00"
    closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def check_clock(cls, v):
        if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", v):
            raise ValueError("Time must be in HH:MM format")
        return v


class SalonBase(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = None
    address: str = Field(min_length=5)
    city: str = Field(min_length=2)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website_url: Optional[str] = None
    facebook_page: Optional[str] = None
    instagram_page: Optional[str] = None
    whatsapp_number: Optional[str] = None


class SalonCreate(SalonBase):
    image_url: Optional[str] = None
    operating_hours: Optional[Dict[str, OperatingDay]] = None
    default_slot_capacity: int = Field(default=4, ge=1, le=50)
    contract_amount: Optional[float] = None
    next_due_date: Optional[datetime] = None


class SalonUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=5)
    city: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    image_url: Optional[str] = None
    website_url: Optional[str] = None
    facebook_page: Optional[str] = None
    instagram_page: Optional[str] = None
    whatsapp_number: Optional[str] = None
    operating_hours: Optional[Dict[str, OperatingDay]] = None
    default_slot_capacity: Optional[int] = Field(default=None, ge=1, le=50)
    contract_amount: Optional[float] = None
    next_due_date: Optional[datetime] = None


class SalonSummary(CamelModel):
    id: int
    name: str
    slug: str
    address: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None


class SalonResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    address: str
    city: str
    phone: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    website_url: Optional[str] = None
    facebook_page: Optional[str] = None
    instagram_page: Optional[str] = None
    whatsapp_number: Optional[str] = None
    contract_amount: Optional[float] = None
    next_due_date: Optional[datetime] = None
    operating_hours: Dict[str, Any] = {}
    default_slot_capacity: int
    status: str
    created_by: int
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SalonListResponse(CamelModel):
    salons: List[SalonResponse]
    total: int
    page: int
    per_page: int


class SalonApproval(CamelModel):
    action: Literal["approve", "reject", "suspend"]
    reason: Optional[str] = Field(default=None, max_length=500)


# Service schemas
class ServiceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(ge=0)
    duration_minutes: int = Field(default=30, ge=5, le=480)
    show_price: bool = True
    is_active: bool = True


class ServiceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    show_price: Optional[bool] = None
    is_active: Optional[bool] = None


class ServiceSummary(CamelModel):
    id: int
    name: str
    price: float
    duration_minutes: int


class ServiceResponse(ServiceSummary):
    salon_id: int
    description: Optional[str] = None
    show_price: bool
    is_active: bool
    created_at: Optional[datetime] = None


# Slot schemas
class SlotCreate(CamelModel):
    date: date
    start_time: time
    end_time: time
    capacity: Optional[int] = None


class SlotGenerateRequest(CamelModel):
    start_date: date
    end_date: date
    slot_duration_minutes: int = 30
    default_capacity: Optional[int] = None


class SlotWindowResponse(CamelModel):
    date: date
    start_time: time
    end_time: time


class SlotGenerateResponse(CamelModel):
    success: bool = True
    slots_created: int
    skipped: List[SlotWindowResponse] = []
    message: str


class SlotCapacityUpdate(CamelModel):
    capacity: int


class SlotResponse(CamelModel):
    id: int
    salon_id: int
    date: date
    start_time: time
    end_time: time
    capacity: int
    booked_count: int
    available: int


# Booking schemas
class BookingCreate(CamelModel):
    salon_id: int
    service_id: int
    slot_id: int
    booking_date: date
    start_time: Optional[time] = None
    staff_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingComplete(CamelModel):
    mark_no_show: bool = False
    qr_code: Optional[str] = None


class BookingUpdate(CamelModel):
    """Either start the service or reschedule, not both"""
    service_started: Optional[bool] = None
    service_id: Optional[int] = None
    slot_id: Optional[int] = None
    booking_date: Optional[date] = None


class BookingResponse(CamelModel):
    id: int
    user_id: int
    salon_id: int
    service_id: int
    slot_id: Optional[int] = None
    staff_id: Optional[int] = None
    booking_date: date
    start_time: time
    end_time: time
    status: str
    qr_code: str
    notes: Optional[str] = None
    service_started_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    created_at: Optional[datetime] = None
    salon: Optional[SalonSummary] = None
    service: Optional[ServiceSummary] = None
    user: Optional[UserSummary] = None


class BookingListResponse(CamelModel):
    bookings: List[BookingResponse]
    total: int
    page: int
    per_page: int


# Staff schemas
class StaffAddRequest(CamelModel):
    phone: Phone
    role: Literal["salon_admin", "salon_staff"] = "salon_staff"


class StaffResponse(CamelModel):
    id: int
    user_id: int
    salon_id: int
    role: str
    invited_by: Optional[int] = None
    created_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


# Salon payment schemas
class SalonPaymentCreate(CamelModel):
    salon_id: int
    amount_paid: float = Field(gt=0)
    months_paid: int = Field(default=1, ge=1, le=24)
    screenshot_url: str


class SalonPaymentReview(CamelModel):
    status: Literal["verified", "rejected"]


class SalonPaymentResponse(CamelModel):
    id: int
    salon_id: int
    amount_paid: float
    months_paid: int
    screenshot_url: str
    status: str
    verified_by: Optional[int] = None
    created_at: Optional[datetime] = None
    salon: Optional[SalonSummary] = None


# Generic schemas
class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UploadResponse(BaseModel):
    success: bool = True
    url: str
    message: str = "Image uploaded successfully"
