"""
Unit tests for image uploads
"""
import io

import pytest
from fastapi import status

from app.core import storage
from app.core.storage import MAX_FILE_SIZE, folder_for, validate_image_file
from app.models.models import User


@pytest.fixture
def fake_cloudinary(monkeypatch):
    calls = []

    def upload(file_data, **options):
        calls.append(options)
        return {"secure_url": f"https://res.cloudinary.com/demo/{options['folder']}/image.png"}

    monkeypatch.setattr(storage.cloudinary.uploader, "upload", upload)
    return calls


@pytest.mark.unit
class TestValidation:

    def test_accepts_images_and_pdf(self):
        assert validate_image_file("image/png", 1024) == (True, None)
        assert validate_image_file("application/pdf", 1024) == (True, None)

    def test_rejects_type_and_size(self):
        ok, error = validate_image_file("text/plain", 10)
        assert not ok and "Invalid file type" in error

        ok, error = validate_image_file("image/jpeg", MAX_FILE_SIZE + 1)
        assert not ok and "5MB" in error

    def test_folders(self):
        assert folder_for("avatar", 5) == "avatars/5"
        assert folder_for("payment", 5) == "payments"
        assert folder_for(None, 5) == "uploads"


@pytest.mark.unit
class TestUploadEndpoint:

    def test_avatar_upload_sets_profile(self, client, db, test_user, user_headers, fake_cloudinary):
        response = client.post(
            "/api/upload/image",
            headers=user_headers,
            files={"file": ("me.png", io.BytesIO(b"\x89PNG fake"), "image/png")},
            data={"type": "avatar"},
        )

        assert response.status_code == status.HTTP_200_OK
        url = response.json()["url"]
        assert url.endswith(f"avatars/{test_user.id}/image.png")
        db.expire_all()
        assert db.query(User).filter(User.id == test_user.id).one().avatar_url == url

    def test_rejects_wrong_type(self, client, user_headers, fake_cloudinary):
        response = client.post(
            "/api/upload/image",
            headers=user_headers,
            files={"file": ("notes.txt", io.BytesIO(b"hello"), "text/plain")},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert fake_cloudinary == []

    def test_provider_failure(self, client, user_headers, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("cloudinary down")

        monkeypatch.setattr(storage.cloudinary.uploader, "upload", broken)

        response = client.post(
            "/api/upload/image",
            headers=user_headers,
            files={"file": ("me.png", io.BytesIO(b"\x89PNG fake"), "image/png")},
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["code"] == "UPLOAD_FAILED"

    def test_salon_cover_image(self, client, test_salon, admin_headers, fake_cloudinary):
        response = client.post(
            f"/api/salons/{test_salon.id}/image",
            headers=admin_headers,
            files={"file": ("cover.jpg", io.BytesIO(b"jpeg"), "image/jpeg")},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["imageUrl"].startswith("https://res.cloudinary.com/demo/salons/")
