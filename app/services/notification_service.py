"""
Notification Service - SMS delivery through the Twilio REST API

Messages:
- OTP: verification code for login/signup (failure is reported to the caller)
- BOOKING_CONFIRMATION: customer confirmation plus a heads-up to the salon admin
  (best effort, runs after the booking transaction has committed)

Outside production the messages are logged instead of sent.
"""
import logging
from datetime import datetime
from typing import Optional

import requests

from app.core.config import settings
from app.core.errors import DependencyError

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
SMS_TIMEOUT_SECONDS = 10
DEFAULT_SALON_NAME = "Salons Vibes"


class NotificationType:
    """Notification type constants"""
    OTP = "otp"
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_ADMIN_ALERT = "booking_admin_alert"


def format_booking_time(value: datetime) -> str:
    """Mon, Feb 2 at 10:30 AM"""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{value.strftime('%a, %b')} {value.day} at {hour}:{value.minute:02d} {suffix}"


class NotificationService:
    """
    Thin SMS sender.

    Raises DependencyError when the provider is misconfigured or rejects
    the message; callers on non-critical paths are expected to catch it.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    @property
    def live(self) -> bool:
        return settings.ENVIRONMENT == "production"

    # ==================== SMS METHODS ====================

    def _send_sms(self, phone: str, message: str, kind: str) -> None:
        if not self.live:
            logger.info(f"[SMS:{kind}] {settings.ENVIRONMENT} mode, not sent to {phone}: {message}")
            return

        if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_PHONE_NUMBER):
            raise DependencyError("SMS provider not configured", code="SMS_NOT_CONFIGURED")

        try:
            response = self.session.post(
                TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID),
                data={"To": phone, "From": settings.TWILIO_PHONE_NUMBER, "Body": message},
                auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
                timeout=SMS_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise DependencyError(f"Failed to send SMS: {e}", code="SMS_FAILED")

        if response.status_code >= 400:
            logger.error(f"[SMS:{kind}] Twilio rejected message to {phone}: {response.status_code} {response.text}")
            raise DependencyError("Failed to send SMS", code="SMS_FAILED")

        logger.info(f"[SMS:{kind}] Sent to {phone}")

    # ==================== MESSAGES ====================

    def send_otp(self, phone: str, otp: str) -> None:
        self._send_sms(
            phone,
            f"Your Salons Vibes verification code is: {otp}. Valid for {settings.OTP_EXPIRE_MINUTES} minutes.",
            NotificationType.OTP,
        )

    def send_booking_confirmation(
        self,
        phone: str,
        customer_name: str,
        date_time: datetime,
        salon_name: Optional[str] = None,
        admin_phone: Optional[str] = None
    ) -> None:
        """
        Confirm a booking to the customer and alert the salon admin.

        Args:
            phone: customer phone (E.164)
            customer_name: shown in both messages
            date_time: appointment start
            salon_name: defaults to the platform name
            admin_phone: salon admin to alert, skipped when missing
        """
        when = format_booking_time(date_time)
        base_url = settings.APP_BASE_URL.rstrip("/")

        self._send_sms(
            phone,
            f"Hi {customer_name}, your booking at {salon_name or DEFAULT_SALON_NAME} is confirmed for {when}. "
            f"See you soon! Manage: {base_url}/bookings",
            NotificationType.BOOKING_CONFIRMATION,
        )
        if admin_phone:
            self._send_sms(
                admin_phone,
                f"NEW BOOKING: {customer_name} scheduled for {when}. View details: {base_url}/dashboard",
                NotificationType.BOOKING_ADMIN_ALERT,
            )


def deliver_booking_confirmation(confirmation) -> None:
    """
    Background task body. Never raises: the booking is already committed
    and a failed SMS must not affect it.
    """
    if not confirmation.phone:
        logger.warning("Booking confirmation skipped: customer has no phone number")
        return
    try:
        NotificationService().send_booking_confirmation(
            phone=confirmation.phone,
            customer_name=confirmation.customer_name,
            date_time=confirmation.date_time,
            salon_name=confirmation.salon_name,
            admin_phone=confirmation.admin_phone,
        )
    except Exception:
        logger.exception(f"Failed to deliver booking confirmation to {confirmation.phone}")
