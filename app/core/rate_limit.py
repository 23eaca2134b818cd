"""
Fixed-window request limiter backed by the rate_limits table.

One row per (identifier, action); the window restarts when it is older
than ``window``. Counting happens in the caller's session and is
committed immediately so rejected requests still count.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import RateLimitError
from app.models.models import RateLimit

logger = logging.getLogger(__name__)

OTP_ACTION = "send_otp"


def hit(db: Session, identifier: str, action: str, limit: int, window: timedelta) -> None:
    """
    Count one request and raise RateLimitError once ``limit`` is exceeded.
    """
    now = datetime.utcnow()
    entry = db.query(RateLimit).filter(
        RateLimit.identifier == identifier,
        RateLimit.action == action
    ).first()

    if entry is None:
        db.add(RateLimit(identifier=identifier, action=action, count=1, window_start=now))
        try:
            db.commit()
        except IntegrityError:
            # Another request created the row first; count against it
            db.rollback()
            hit(db, identifier, action, limit, window)
        return

    if entry.window_start + window <= now:
        entry.window_start = now
        entry.count = 1
    else:
        entry.count += 1
    db.commit()

    if entry.count > limit:
        logger.warning(f"Rate limit exceeded for {action} by {identifier}")
        raise RateLimitError("Too many OTP requests. Please try again later.")


def check_otp_rate_limit(db: Session, phone: str) -> None:
    hit(
        db,
        identifier=phone,
        action=OTP_ACTION,
        limit=settings.RATE_LIMIT_OTP_PER_PHONE,
        window=timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES),
    )
