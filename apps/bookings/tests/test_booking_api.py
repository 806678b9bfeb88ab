"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.services import get_reconciler
from apps.store.backend import get_document_store
from conftest import add_car

User = get_user_model()


class BookingAPITests(APITestCase):
    """Covers creation, conflicts, cancellation and admin transitions."""

    def setUp(self) -> None:
        self.customer = User.objects.create_user(
            username="amina", email="amina@example.com", password="CustomerPass123",
        )
        self.other = User.objects.create_user(
            username="otieno", email="otieno@example.com", password="OtherPass123",
        )
        self.admin = User.objects.create_user(
            username="fleet", email="fleet@example.com", password="AdminPass123", is_staff=True,
        )
        self.car = add_car(get_document_store(), name="Toyota Prado", price="5000")
        self.today = timezone.now().date()
        self.client.force_authenticate(self.customer)
        self.list_url = reverse("booking-list")

    def _payload(self, pickup_offset: int, days: int) -> dict[str, str]:
        pickup = self.today + timedelta(days=pickup_offset)
        return {
            "car_id": self.car.id,
            "pickup_date": str(pickup),
            "dropoff_date": str(pickup + timedelta(days=days)),
            "customer_name": "Amina W.",
            "customer_email": "amina@example.com",
        }

    def _create(self, pickup_offset: int = 10, days: int = 3) -> dict:
        response = self.client.post(self.list_url, self._payload(pickup_offset, days), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data

    def test_customer_can_create_booking(self) -> None:
        data = self._create()

        self.assertTrue(data["id"].startswith("BK"))
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["payment_status"], "pending")
        self.assertEqual(data["total_days"], 3)
        self.assertEqual(data["total_amount"], "17400.00")
        self.assertEqual(data["user_id"], str(self.customer.pk))
        self.assertIsNotNone(data["hold_expires_at"])

    def test_anonymous_user_cannot_book(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.post(self.list_url, self._payload(10, 3), format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "auth_required")

    def test_past_pickup_is_rejected(self) -> None:
        response = self.client.post(self.list_url, self._payload(-1, 3), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "invalid_date_range")

    def test_missing_fields_are_rejected(self) -> None:
        response = self.client.post(self.list_url, {"car_id": self.car.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("pickup_date", response.data)

    def test_overlapping_booking_returns_conflict(self) -> None:
        self._create(10, 3)

        self.client.force_authenticate(self.other)
        response = self.client.post(self.list_url, self._payload(11, 3), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"], "date_conflict")
        self.assertEqual(len(response.data["conflicts"]), 1)

        back_to_back = self.client.post(self.list_url, self._payload(13, 2), format="json")
        self.assertEqual(back_to_back.status_code, status.HTTP_201_CREATED)

    def test_list_and_retrieve_are_scoped_to_owner(self) -> None:
        booking = self._create()

        listed = self.client.get(self.list_url)
        self.assertEqual(listed.status_code, status.HTTP_200_OK)
        self.assertEqual([b["id"] for b in listed.data], [booking["id"]])

        detail_url = reverse("booking-detail", args=[booking["id"]])
        self.assertEqual(self.client.get(detail_url).status_code, status.HTTP_200_OK)

        self.client.force_authenticate(self.other)
        self.assertEqual(self.client.get(detail_url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(self.list_url).data, [])

    def test_owner_can_cancel_other_user_cannot(self) -> None:
        booking = self._create()
        cancel_url = reverse("booking-cancel", args=[booking["id"]])

        self.client.force_authenticate(self.other)
        forbidden = self.client.post(cancel_url, {"reason": "Not mine"}, format="json")
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.customer)
        response = self.client.post(cancel_url, {"reason": "Plans changed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(response.data["payment_status"], "cancelled")
        self.assertEqual(response.data["cancellation_reason"], "Plans changed")

        again = self.client.post(cancel_url, {}, format="json")
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data["error"], "illegal_transition")

    def test_paid_booking_cancelled_early_is_refunded(self) -> None:
        booking = self._create(10, 3)
        get_reconciler().on_payment_update(booking["id"], "paid").unwrap()

        response = self.client.post(reverse("booking-cancel", args=[booking["id"]]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["payment_status"], "refunded")
        self.assertEqual(response.data["refund_amount"], "15660.00")

    def test_owner_cannot_set_own_refund(self) -> None:
        booking = self._create()
        get_reconciler().on_payment_update(booking["id"], "paid").unwrap()

        response = self.client.post(
            reverse("booking-cancel", args=[booking["id"]]), {"refund_amount": "999999.00"}, format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"], "admin_required")
        detail = self.client.get(reverse("booking-detail", args=[booking["id"]]))
        self.assertEqual(detail.data["status"], "confirmed")

    def test_status_changes_are_admin_only(self) -> None:
        booking = self._create()
        status_url = reverse("booking-change-status", args=[booking["id"]])

        denied = self.client.post(status_url, {"status": "confirmed"}, format="json")
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        confirmed = self.client.post(status_url, {"status": "confirmed"}, format="json")
        self.assertEqual(confirmed.status_code, status.HTTP_200_OK)
        self.assertEqual(confirmed.data["payment_status"], "paid")

        started = self.client.post(reverse("booking-start", args=[booking["id"]]))
        self.assertEqual(started.data["status"], "active")

        completed = self.client.post(reverse("booking-complete", args=[booking["id"]]))
        self.assertEqual(completed.data["status"], "completed")
        self.assertEqual(
            [entry["status"] for entry in completed.data["history"]],
            ["confirmed", "active", "completed"],
        )

    def test_start_requires_admin_role(self) -> None:
        booking = self._create()

        response = self.client.post(reverse("booking-start", args=[booking["id"]]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_all_bookings_for_admin(self) -> None:
        self._create(10, 3)
        url = reverse("booking-all-bookings")

        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.get(url, {"status": "pending"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_available_cars_and_conflicts(self) -> None:
        booking = self._create(10, 3)
        spare = add_car(get_document_store(), name="Mazda Demio", category="economy", price="3000")
        pickup = self.today + timedelta(days=11)
        dropoff = self.today + timedelta(days=12)

        available = self.client.get(
            reverse("booking-available-cars"),
            {"pickup_date": str(pickup), "dropoff_date": str(dropoff)},
        )
        self.assertEqual(available.status_code, status.HTTP_200_OK)
        self.assertEqual([c["id"] for c in available.data], [spare.id])

        conflicts = self.client.get(
            reverse("booking-conflicts"),
            {"car_id": self.car.id, "pickup_date": str(pickup), "dropoff_date": str(dropoff)},
        )
        self.assertTrue(conflicts.data["has_conflict"])
        self.assertEqual([b["id"] for b in conflicts.data["conflicts"]], [booking["id"]])
