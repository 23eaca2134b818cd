"""
Unit tests for salon endpoints
"""
import pytest
from datetime import time
from fastapi import status

from app.models.models import Booking, BookingStatus, SalonMembership, SalonStatus, Slot
from factories import TOMORROW


@pytest.mark.unit
class TestSalonListing:
    """Tests for public salon reads"""

    def test_public_sees_approved_only(self, client, test_salon, pending_salon):
        response = client.get("/api/salons/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 1
        assert [s["id"] for s in data["salons"]] == [test_salon.id]

    def test_public_listing_hides_contact(self, client, test_salon):
        response = client.get("/api/salons/")

        salon = response.json()["salons"][0]
        assert salon["phone"] is None
        assert salon["email"] is None
        assert salon["address"] == test_salon.address

    def test_staff_see_contact(self, client, test_salon, staff_headers):
        response = client.get(f"/api/salons/{test_salon.id}", headers=staff_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["phone"] == test_salon.phone
        assert response.json()["email"] == test_salon.email

    def test_include_own_shows_pending(self, client, test_salon, pending_salon, admin_headers):
        response = client.get("/api/salons/?includeOwn=true", headers=admin_headers)

        ids = {s["id"] for s in response.json()["salons"]}
        assert ids == {test_salon.id, pending_salon.id}

    def test_superadmin_filters_by_status(self, client, test_salon, pending_salon, superadmin_headers):
        response = client.get("/api/salons/?status=pending", headers=superadmin_headers)

        assert [s["id"] for s in response.json()["salons"]] == [pending_salon.id]

    def test_filter_by_city(self, client, test_salon):
        assert client.get("/api/salons/?city=sydney").json()["total"] == 1
        assert client.get("/api/salons/?city=perth").json()["total"] == 0

    def test_get_by_slug(self, client, test_salon):
        response = client.get("/api/salons/name/test-salon")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == test_salon.id

    def test_pending_salon_hidden_from_public(self, client, pending_salon):
        response = client.get(f"/api/salons/{pending_salon.id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "SALON_NOT_FOUND"


@pytest.mark.unit
class TestSalonManagement:

    def test_create_salon_pending_with_admin_membership(self, client, db, test_user, user_headers):
        response = client.post(
            "/api/salons/",
            headers=user_headers,
            json={
                "name": "New Salon",
                "address": "456 New Street",
                "city": "Brisbane",
                "phone": "+61733334444",
                "contractAmount": 99,
            }
        )

        assert response.status_code == status.HTTP_201_CREATED, response.text
        data = response.json()
        assert data["slug"] == "new-salon"
        assert data["status"] == SalonStatus.PENDING
        assert data["phone"] == "+61733334444"
        assert data["contractAmount"] is None
        assert data["operatingHours"]["monday"]["open"] == "09:00"

        membership = db.query(SalonMembership).filter(SalonMembership.salon_id == data["id"]).one()
        assert membership.user_id == test_user.id
        assert membership.role == "salon_admin"

    def test_duplicate_names_get_unique_slugs(self, client, test_salon, user_headers):
        response = client.post(
            "/api/salons/",
            headers=user_headers,
            json={"name": "Test Salon", "address": "1 Another Street", "city": "Sydney"}
        )

        assert response.json()["slug"] == "test-salon-1"

    def test_create_requires_auth(self, client):
        response = client.post("/api/salons/", json={"name": "Anon", "address": "1 Nowhere", "city": "Sydney"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_bad_operating_hours(self, client, user_headers):
        response = client.post(
            "/api/salons/",
            headers=user_headers,
            json={
                "name": "Late Salon",
                "address": "9 Night Street",
                "city": "Sydney",
                "operatingHours": {"monday": {"open": "9am", "close": "18:00"}},
            }
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_admin_updates_salon(self, client, test_salon, admin_headers):
        response = client.put(
            f"/api/salons/{test_salon.id}",
            headers=admin_headers,
            json={"description": "Now with espresso", "defaultSlotCapacity": 6}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["description"] == "Now with espresso"
        assert response.json()["defaultSlotCapacity"] == 6

    def test_admin_cannot_change_contract(self, client, test_salon, admin_headers):
        response = client.put(
            f"/api/salons/{test_salon.id}", headers=admin_headers, json={"contractAmount": 10}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_staff_cannot_update_salon(self, client, test_salon, staff_headers):
        response = client.put(f"/api/salons/{test_salon.id}", headers=staff_headers, json={"city": "Perth"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["code"] == "PERMISSION_DENIED"

    def test_superadmin_approves(self, client, db, pending_salon, test_superadmin, superadmin_headers):
        response = client.post(
            f"/api/salons/{pending_salon.id}/approve",
            headers=superadmin_headers,
            json={"action": "approve"}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == SalonStatus.APPROVED
        assert data["approvedBy"] == test_superadmin.id
        assert data["approvedAt"] is not None

    def test_salon_admin_cannot_approve(self, client, pending_salon, admin_headers):
        response = client.post(
            f"/api/salons/{pending_salon.id}/approve",
            headers=admin_headers,
            json={"action": "approve"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_suspend(self, client, test_salon, superadmin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/approve",
            headers=superadmin_headers,
            json={"action": "suspend", "reason": "Unpaid fees"}
        )
        assert response.json()["status"] == SalonStatus.SUSPENDED


@pytest.mark.unit
class TestSalonSlots:

    def test_generate_slots(self, client, db, test_salon, admin_headers):
        day = TOMORROW.isoformat()
        payload = {"startDate": day, "endDate": day, "slotDurationMinutes": 60, "defaultCapacity": 3}

        response = client.post(f"/api/salons/{test_salon.id}/slots/generate", headers=admin_headers, json=payload)

        assert response.status_code == status.HTTP_200_OK, response.text
        created = response.json()["slotsCreated"]
        assert created == db.query(Slot).filter(Slot.salon_id == test_salon.id).count()

        again = client.post(f"/api/salons/{test_salon.id}/slots/generate", headers=admin_headers, json=payload)
        assert again.json()["slotsCreated"] == 0
        assert len(again.json()["skipped"]) == created

    def test_generate_rejects_inverted_range(self, client, test_salon, admin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/slots/generate",
            headers=admin_headers,
            json={"startDate": "2030-01-08", "endDate": "2030-01-07"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_DATE_RANGE"

    def test_staff_cannot_generate(self, client, test_salon, staff_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/slots/generate",
            headers=staff_headers,
            json={"startDate": "2030-01-07", "endDate": "2030-01-07"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_list_slots_for_day(self, client, test_slot, other_slot, test_salon):
        response = client.get(f"/api/salons/{test_salon.id}/slots?date={TOMORROW.isoformat()}")

        assert response.status_code == status.HTTP_200_OK
        slots = response.json()
        assert [s["startTime"] for s in slots] == ["10:00:00", "11:00:00"]
        assert slots[0]["available"] == 2

    def test_add_slot(self, client, test_salon, admin_headers):
        response = client.post(
            f"/api/salons/{test_salon.id}/slots",
            headers=admin_headers,
            json={"date": "2030-01-07", "startTime": "15:00", "endTime": "15:30"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["capacity"] == test_salon.default_slot_capacity
        assert response.json()["bookedCount"] == 0

    def test_update_capacity(self, client, test_salon, test_slot, admin_headers):
        response = client.put(
            f"/api/salons/{test_salon.id}/slots/{test_slot.id}", headers=admin_headers, json={"capacity": 5}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["capacity"] == 5
        assert response.json()["available"] == 5

    def test_capacity_below_booked_rejected(self, client, db, test_salon, test_slot, admin_headers):
        test_slot.booked_count = 2
        db.commit()

        response = client.put(
            f"/api/salons/{test_salon.id}/slots/{test_slot.id}", headers=admin_headers, json={"capacity": 1}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == "CAPACITY_BELOW_BOOKED"
        db.refresh(test_slot)
        assert test_slot.capacity == 2

    def test_delete_empty_slot(self, client, db, test_salon, test_slot, admin_headers):
        slot_id = test_slot.id
        response = client.delete(f"/api/salons/{test_salon.id}/slots/{slot_id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert db.query(Slot).filter(Slot.id == slot_id).first() is None

    def test_delete_slot_keeps_cancelled_history(
        self, client, db, test_salon, test_service, test_slot, test_user, admin_headers, user_headers
    ):
        booking = Booking(
            user_id=test_user.id, salon_id=test_salon.id, service_id=test_service.id,
            slot_id=test_slot.id, booking_date=test_slot.date, start_time=test_slot.start_time,
            end_time=test_slot.end_time, status=BookingStatus.CANCELLED, qr_code="0F0F0F0F0F0F0F0F"
        )
        db.add(booking)
        db.commit()
        slot_id, booking_id = test_slot.id, booking.id

        response = client.delete(f"/api/salons/{test_salon.id}/slots/{slot_id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        db.expire_all()
        assert db.query(Slot).filter(Slot.id == slot_id).first() is None
        kept = db.query(Booking).filter(Booking.id == booking_id).one()
        assert kept.status == BookingStatus.CANCELLED
        assert kept.slot_id is None

        history = client.get(f"/api/bookings/{booking_id}", headers=user_headers)
        assert history.status_code == status.HTTP_200_OK
        assert history.json()["slotId"] is None

    def test_delete_slot_with_bookings_rejected(
        self, client, db, test_salon, test_service, test_slot, test_user, admin_headers
    ):
        db.add(Booking(
            user_id=test_user.id, salon_id=test_salon.id, service_id=test_service.id,
            slot_id=test_slot.id, booking_date=test_slot.date, start_time=test_slot.start_time,
            end_time=test_slot.end_time, status=BookingStatus.BOOKED, qr_code="ABCDEF0123456789"
        ))
        test_slot.booked_count = 1
        db.commit()

        response = client.delete(f"/api/salons/{test_salon.id}/slots/{test_slot.id}", headers=admin_headers)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == "SLOT_HAS_BOOKINGS"
        assert db.query(Slot).filter(Slot.id == test_slot.id).count() == 1

    def test_slot_of_other_salon_not_found(self, client, db, test_salon, pending_salon, admin_headers):
        foreign = Slot(
            salon_id=pending_salon.id, date=TOMORROW, start_time=time(12, 0),
            end_time=time(12, 30), capacity=1, booked_count=0
        )
        db.add(foreign)
        db.commit()

        response = client.delete(f"/api/salons/{test_salon.id}/slots/{foreign.id}", headers=admin_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND