"""
Unit tests for salon service catalog endpoints
"""
import pytest
from fastapi import status

from app.models.models import Booking, BookingStatus, Service


@pytest.mark.unit
class TestServiceCRUD:
    """Tests for service CRUD operations"""

    def test_create_service(self, client, test_salon, admin_headers):
        """Test creating a new service"""
        response = client.post(
            f"/api/salons/{test_salon.id}/services",
            headers=admin_headers,
            json={
                "name": "Beard Trim",
                "description": "Shape and line-up",
                "price": 25.00,
                "durationMinutes": 20
            }
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["name"] == "Beard Trim"
        assert data["price"] == 25.00
        assert data["durationMinutes"] == 20
        assert data["salonId"] == test_salon.id
        assert data["isActive"] is True

    def test_list_services(self, client, test_salon, test_service):
        """Anyone can list an approved salon's services"""
        response = client.get(f"/api/salons/{test_salon.id}/services")

        assert response.status_code == status.HTTP_200_OK
        assert [s["id"] for s in response.json()] == [test_service.id]

    def test_inactive_hidden_from_public(self, client, db, test_salon, test_service, staff_headers):
        test_service.is_active = False
        db.commit()

        assert client.get(f"/api/salons/{test_salon.id}/services").json() == []

        response = client.get(
            f"/api/salons/{test_salon.id}/services?includeInactive=true", headers=staff_headers
        )
        assert [s["id"] for s in response.json()] == [test_service.id]

    def test_update_service(self, client, test_salon, test_service, admin_headers):
        response = client.put(
            f"/api/salons/{test_salon.id}/services/{test_service.id}",
            headers=admin_headers,
            json={"price": 35.5, "showPrice": False}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["price"] == 35.5
        assert data["showPrice"] is False
        assert data["name"] == test_service.name

    def test_update_unknown_service(self, client, test_salon, admin_headers):
        response = client.put(
            f"/api/salons/{test_salon.id}/services/999", headers=admin_headers, json={"price": 1}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "SERVICE_NOT_FOUND"

    def test_delete_unused_service(self, client, db, test_salon, test_service, admin_headers):
        service_id = test_service.id
        response = client.delete(f"/api/salons/{test_salon.id}/services/{service_id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert db.query(Service).filter(Service.id == service_id).first() is None

    def test_delete_booked_service_deactivates(
        self, client, db, test_salon, test_service, test_slot, test_user, admin_headers
    ):
        db.add(Booking(
            user_id=test_user.id, salon_id=test_salon.id, service_id=test_service.id,
            slot_id=test_slot.id, booking_date=test_slot.date, start_time=test_slot.start_time,
            end_time=test_slot.end_time, status=BookingStatus.COMPLETED, qr_code="FEDCBA9876543210"
        ))
        db.commit()

        response = client.delete(f"/api/salons/{test_salon.id}/services/{test_service.id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        db.refresh(test_service)
        assert test_service.is_active is False

    def test_create_service_unauthorized(self, client, test_salon, user_headers):
        """Customers cannot add services"""
        response = client.post(
            f"/api/salons/{test_salon.id}/services",
            headers=user_headers,
            json={"name": "Sneaky", "price": 1}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.unit
class TestServiceValidation:
    """Tests for service input validation"""

    def test_create_service_negative_price(self, client, test_salon, admin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/services",
            headers=admin_headers,
            json={"name": "Free Money", "price": -10}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_service_zero_duration(self, client, test_salon, admin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/services",
            headers=admin_headers,
            json={"name": "Instant", "price": 10, "durationMinutes": 0}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_service_missing_required_fields(self, client, test_salon, admin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/services", headers=admin_headers, json={"description": "No name"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        fields = {d["field"] for d in response.json()["details"]}
        assert {"name", "price"} <= fields
