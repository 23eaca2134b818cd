import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.core.access import Actor
from app.core.config import settings
from app.core.database import get_db
from app.models.models import User, UserRole, SalonMembership

logger = logging.getLogger(__name__)

# OTP codes are short-lived, so a fast KDF is enough
otp_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def generate_otp(length: int = None) -> str:
    """Generate a numeric one-time password"""
    length = length or settings.OTP_LENGTH
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_otp(otp: str) -> str:
    return otp_context.hash(otp)


def verify_otp(otp: str, otp_hash: str) -> bool:
    return otp_context.verify(otp, otp_hash)


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def build_token_claims(db: Session, user: User) -> dict:
    """Collect a user's roles and salon memberships into JWT claims"""
    roles = db.query(UserRole).filter(UserRole.user_id == user.id).all()
    memberships = db.query(SalonMembership).filter(SalonMembership.user_id == user.id).all()
    return {
        "sub": str(user.id),
        "phone": user.phone or "",
        "roles": [r.role for r in roles],
        "salon_memberships": [{"salon_id": m.salon_id, "role": m.role} for m in memberships],
    }


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Actor:
    """Decode a JWT into an Actor. Raises JWTError, KeyError or ValueError on bad tokens."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    return Actor.from_claims(payload)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """Resolve the authenticated actor from the bearer token"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(credentials.credentials)
    except (JWTError, KeyError, ValueError) as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_optional_actor(request: Request) -> Optional[Actor]:
    """
    Resolve the actor if a valid bearer token is present, otherwise None.
    Useful for public endpoints that reveal more to members.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token = auth_header.replace("Bearer ", "")
    try:
        return decode_access_token(token)
    except (JWTError, KeyError, ValueError):
        return None


async def get_current_user(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
) -> User:
    """Load the authenticated user's profile row"""
    user = db.query(User).filter(User.id == actor.user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
