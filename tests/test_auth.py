"""
Unit tests for OTP authentication endpoints
"""
import pytest
from datetime import datetime, timedelta
from fastapi import status

from app.core.config import settings
from app.core.security import decode_access_token, hash_otp, verify_otp
from app.models.models import OtpSession, RateLimit, User, UserRole

NEW_PHONE = "+61411111111"
OTP = "123456"


@pytest.fixture
def fixed_otp(monkeypatch):
    monkeypatch.setattr("app.api.v1.endpoints.auth.generate_otp", lambda: OTP)
    return OTP


def request_otp(client, phone, mode="login"):
    response = client.post("/api/auth/send-otp", json={"phone": phone, "mode": mode})
    assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()["token"]


@pytest.mark.unit
class TestOtpHashing:

    def test_hash_and_verify(self):
        hashed = hash_otp("654321")
        assert hashed != "654321"
        assert verify_otp("654321", hashed)
        assert not verify_otp("000000", hashed)


@pytest.mark.unit
class TestSendOtp:

    def test_send_otp_creates_session(self, client, db, fixed_otp):
        response = client.post("/api/auth/send-otp", json={"phone": NEW_PHONE, "mode": "signup"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["expiresIn"] == settings.OTP_EXPIRE_MINUTES * 60
        session = db.query(OtpSession).filter(OtpSession.session_token == data["token"]).one()
        assert session.phone == NEW_PHONE
        assert session.otp_hash != OTP

    def test_new_request_replaces_previous_session(self, client, db, fixed_otp):
        first = request_otp(client, NEW_PHONE)
        second = request_otp(client, NEW_PHONE)

        assert first != second
        assert db.query(OtpSession).filter(OtpSession.phone == NEW_PHONE).count() == 1

    def test_invalid_phone_rejected(self, client):
        response = client.post("/api/auth/send-otp", json={"phone": "0412345678"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "phone"

    def test_signup_with_registered_phone(self, client, test_user):
        response = client.post("/api/auth/send-otp", json={"phone": test_user.phone, "mode": "signup"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "USER_EXISTS"

    def test_rate_limited(self, client, db, fixed_otp, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_OTP_PER_PHONE", 2)

        request_otp(client, NEW_PHONE)
        request_otp(client, NEW_PHONE)
        response = client.post("/api/auth/send-otp", json={"phone": NEW_PHONE})

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"

    def test_rate_limit_window_resets(self, client, db, fixed_otp, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_OTP_PER_PHONE", 1)
        request_otp(client, NEW_PHONE)

        entry = db.query(RateLimit).filter(RateLimit.identifier == NEW_PHONE).one()
        entry.window_start = datetime.utcnow() - timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES + 1)
        db.commit()

        request_otp(client, NEW_PHONE)


@pytest.mark.unit
class TestVerifyOtp:

    def test_signup_creates_user_with_role(self, client, db, fixed_otp):
        token = request_otp(client, NEW_PHONE, mode="signup")

        response = client.post("/api/auth/verify-otp", json={
            "phone": NEW_PHONE,
            "otp": OTP,
            "token": token,
            "mode": "signup",
            "fullName": "New Customer",
            "email": "New@Example.com",
        })

        assert response.status_code == status.HTTP_200_OK, response.text
        data = response.json()
        assert data["user"]["fullName"] == "New Customer"
        assert data["roles"] == ["user"]
        assert data["salonMemberships"] == []

        user = db.query(User).filter(User.phone == NEW_PHONE).one()
        assert user.email == "new@example.com"
        assert db.query(UserRole).filter(UserRole.user_id == user.id).count() == 1
        assert decode_access_token(data["token"]).user_id == user.id

    def test_login_carries_memberships(self, client, test_salon_admin, test_salon, fixed_otp):
        token = request_otp(client, test_salon_admin.phone)

        response = client.post("/api/auth/verify-otp", json={
            "phone": test_salon_admin.phone, "otp": OTP, "token": token
        })

        assert response.status_code == status.HTTP_200_OK
        actor = decode_access_token(response.json()["token"])
        assert actor.user_id == test_salon_admin.id
        assert actor.salon_ids == [test_salon.id]
        assert "salon_admin" in actor.roles

    def test_login_unknown_phone(self, client, fixed_otp):
        token = request_otp(client, NEW_PHONE)

        response = client.post("/api/auth/verify-otp", json={"phone": NEW_PHONE, "otp": OTP, "token": token})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "USER_NOT_FOUND"

    def test_signup_requires_name(self, client, fixed_otp):
        token = request_otp(client, NEW_PHONE, mode="signup")

        response = client.post("/api/auth/verify-otp", json={
            "phone": NEW_PHONE, "otp": OTP, "token": token, "mode": "signup"
        })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "NAME_REQUIRED"

    def test_wrong_code_counts_attempts(self, client, db, test_user, fixed_otp):
        token = request_otp(client, test_user.phone)
        payload = {"phone": test_user.phone, "otp": "000000", "token": token}

        for _ in range(settings.OTP_MAX_ATTEMPTS):
            response = client.post("/api/auth/verify-otp", json=payload)
            assert response.json()["code"] == "INVALID_OTP"

        payload["otp"] = OTP
        response = client.post("/api/auth/verify-otp", json=payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "TOO_MANY_ATTEMPTS"

    def test_code_is_single_use(self, client, test_user, fixed_otp):
        token = request_otp(client, test_user.phone)
        payload = {"phone": test_user.phone, "otp": OTP, "token": token}

        assert client.post("/api/auth/verify-otp", json=payload).status_code == status.HTTP_200_OK
        response = client.post("/api/auth/verify-otp", json=payload)

        assert response.json()["code"] == "OTP_USED"

    def test_expired_code(self, client, db, test_user, fixed_otp):
        token = request_otp(client, test_user.phone)
        session = db.query(OtpSession).filter(OtpSession.session_token == token).one()
        session.expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.commit()

        response = client.post("/api/auth/verify-otp", json={"phone": test_user.phone, "otp": OTP, "token": token})

        assert response.json()["code"] == "OTP_EXPIRED"

    def test_token_bound_to_phone(self, client, test_user, other_user, fixed_otp):
        token = request_otp(client, test_user.phone)

        response = client.post("/api/auth/verify-otp", json={"phone": other_user.phone, "otp": OTP, "token": token})

        assert response.json()["code"] == "INVALID_SESSION"


@pytest.mark.unit
class TestCurrentUser:

    def test_me(self, client, user_headers, test_user):
        response = client.get("/api/auth/me", headers=user_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["user"]["id"] == test_user.id
        assert data["roles"] == ["user"]

    def test_me_without_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_with_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout(self, client, user_headers):
        response = client.post("/api/auth/logout", headers=user_headers)
        assert response.status_code == status.HTTP_200_OK
