import logging
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.core.access import USER, Actor
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import AppError, DependencyError, NotFoundError, ValidationError
from app.core.rate_limit import check_otp_rate_limit
from app.core.security import (
    build_token_claims, create_access_token, generate_otp, generate_session_token,
    get_current_actor, hash_otp, verify_otp
)
from app.models.models import OtpSession, User, UserRole
from app.schemas.schemas import (
    AuthResponse, MeResponse, MessageResponse, SendOtpRequest, SendOtpResponse, VerifyOtpRequest
)
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send-otp", response_model=SendOtpResponse)
def send_otp(payload: SendOtpRequest, request: Request, db: Session = Depends(get_db)):
    """Start a login or signup by texting a one-time code"""
    if payload.mode == "signup":
        exists = db.query(User.id).filter(User.phone == payload.phone).first()
        if exists:
            raise ValidationError(
                "This phone number is already registered. Please sign in instead.",
                code="USER_EXISTS"
            )

    check_otp_rate_limit(db, payload.phone)

    # Drop this phone's previous challenges along with anything expired
    db.query(OtpSession).filter(
        or_(OtpSession.phone == payload.phone, OtpSession.expires_at < datetime.utcnow())
    ).delete(synchronize_session=False)

    otp = generate_otp()
    session = OtpSession(
        phone=payload.phone,
        otp_hash=hash_otp(otp),
        session_token=generate_session_token(),
        expires_at=datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        ip_address=request.client.host if request.client else None,
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    try:
        NotificationService().send_otp(payload.phone, otp)
    except AppError:
        db.delete(session)
        db.commit()
        logger.error(f"OTP delivery to {payload.phone} failed")
        raise DependencyError("SMS service unavailable", code="SMS_FAILED")

    logger.info(f"OTP issued for {payload.phone} ({payload.mode})")
    return SendOtpResponse(
        message="OTP sent successfully",
        token=session.session_token,
        expires_in=settings.OTP_EXPIRE_MINUTES * 60,
    )


@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp_code(payload: VerifyOtpRequest, db: Session = Depends(get_db)):
    """Check the code and return a JWT carrying roles and salon memberships"""
    session = db.query(OtpSession).filter(OtpSession.session_token == payload.token).first()

    if not session or session.phone != payload.phone:
        raise ValidationError("Invalid session", code="INVALID_SESSION")
    if session.used:
        raise ValidationError("OTP already used", code="OTP_USED")
    if session.expires_at < datetime.utcnow():
        raise ValidationError("OTP expired", code="OTP_EXPIRED")
    if session.attempts >= settings.OTP_MAX_ATTEMPTS:
        raise ValidationError("Too many attempts", code="TOO_MANY_ATTEMPTS")

    if not verify_otp(payload.otp, session.otp_hash):
        session.attempts += 1
        db.commit()
        raise ValidationError("Invalid OTP", code="INVALID_OTP")

    session.used = True
    db.commit()

    user = db.query(User).filter(User.phone == payload.phone).first()
    if payload.mode == "signup":
        if user:
            raise ValidationError("User already exists. Please login instead.", code="USER_EXISTS")
        if not payload.full_name:
            raise ValidationError("Full name required for signup", code="NAME_REQUIRED")

        user = User(
            phone=payload.phone,
            full_name=payload.full_name,
            email=payload.email.lower() if payload.email else None,
            gender=payload.gender,
        )
        db.add(user)
        db.flush()
        db.add(UserRole(user_id=user.id, role=USER))
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} signed up")
    elif not user:
        raise NotFoundError("User not found. Please signup first.", code="USER_NOT_FOUND")

    claims = build_token_claims(db, user)
    return AuthResponse(
        token=create_access_token(claims),
        user=user,
        roles=claims["roles"],
        salon_memberships=claims["salon_memberships"],
        message="Account created successfully" if payload.mode == "signup" else "Login successful",
    )


@router.get("/me", response_model=MeResponse)
def read_me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Current user with fresh roles and memberships"""
    user = db.query(User).filter(User.id == actor.user_id).first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    claims = build_token_claims(db, user)
    return MeResponse(user=user, roles=claims["roles"], salon_memberships=claims["salon_memberships"])


@router.post("/logout", response_model=MessageResponse)
def logout(actor: Actor = Depends(get_current_actor)):
    """Tokens are stateless; the client discards its copy"""
    return MessageResponse(message="Logged out successfully")
