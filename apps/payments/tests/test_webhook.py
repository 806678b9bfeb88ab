"""Integration tests for the payment gateway webhook."""

from __future__ import annotations

import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.services import get_lifecycle_manager
from apps.bookings.tasks import process_payment_event
from apps.cars.repository import CarRepository
from apps.payments.signatures import sign_payload, verify_signature
from apps.store.backend import get_document_store
from conftest import add_car

User = get_user_model()


class PaymentWebhookTests(APITestCase):
    def setUp(self) -> None:
        self.customer = User.objects.create_user(
            username="amina", email="amina@example.com", password="CustomerPass123",
        )
        self.car = add_car(get_document_store(), name="Toyota Prado", price="5000")
        self.url = reverse("payment-webhook")

        pickup = timezone.now().date() + timedelta(days=7)
        self.client.force_authenticate(self.customer)
        response = self.client.post(reverse("booking-list"), {
            "car_id": self.car.id,
            "pickup_date": str(pickup),
            "dropoff_date": str(pickup + timedelta(days=2)),
            "customer_name": "Amina",
            "customer_email": "amina@example.com",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.booking_id = response.data["id"]
        self.client.force_authenticate(None)
        mail.outbox.clear()

    def _booking(self):
        return get_lifecycle_manager().get_booking(self.booking_id).unwrap()

    def test_paid_callback_confirms_booking(self) -> None:
        response = self.client.post(self.url, {
            "bookingId": self.booking_id,
            "status": "completed",
            "reference": "QK7X1ABC",
            "resultDescription": "The service request is processed successfully.",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        booking = self._booking()
        self.assertEqual(booking.status.value, "confirmed")
        self.assertEqual(booking.payment_status.value, "paid")
        self.assertEqual(booking.payment_reference, "QK7X1ABC")

        car = CarRepository(get_document_store()).get(self.car.id)
        self.assertEqual(car.total_bookings, 1)
        self.assertFalse(car.available)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["amina@example.com"])

    def test_repeated_callback_counts_payment_once(self) -> None:
        payload = {"bookingId": self.booking_id, "status": "paid"}
        self.client.post(self.url, payload, format="json")
        self.client.post(self.url, payload, format="json")

        car = CarRepository(get_document_store()).get(self.car.id)
        self.assertEqual(car.total_bookings, 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_declined_callback_fails_booking(self) -> None:
        self.client.post(self.url, {"bookingId": self.booking_id, "status": "declined"}, format="json")

        booking = self._booking()
        self.assertEqual(booking.status.value, "payment_failed")
        self.assertEqual(booking.payment_status.value, "failed")

    def test_invalid_payload_is_rejected(self) -> None:
        response = self.client.post(self.url, {"bookingId": self.booking_id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", response.data)

    def test_unreadable_payment_time_is_rejected(self) -> None:
        outcome = process_payment_event.apply(
            args=[{"bookingId": self.booking_id, "status": "paid", "paidAt": "yesterday"}],
        ).get()

        self.assertEqual(outcome, {"status": "rejected", "error": "validation_failed"})
        self.assertEqual(self._booking().status.value, "pending")

    @override_settings(PAYMENT_WEBHOOK_SECRET="s3cret")
    def test_signature_is_checked_when_secret_is_set(self) -> None:
        body = json.dumps({"bookingId": self.booking_id, "status": "paid"})

        forged = self.client.post(
            self.url, body, content_type="application/json", HTTP_X_PAYMENT_SIGNATURE="deadbeef",
        )
        self.assertEqual(forged.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self._booking().status.value, "pending")

        signed = self.client.post(
            self.url, body, content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=sign_payload(body.encode(), "s3cret"),
        )
        self.assertEqual(signed.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(self._booking().status.value, "confirmed")


class ProcessPaymentEventTests(APITestCase):
    def test_unknown_booking_is_rejected(self) -> None:
        outcome = process_payment_event.apply(args=[{"bookingId": "BK00000000ZZZZ", "status": "paid"}]).get()
        self.assertEqual(outcome, {"status": "rejected", "error": "not_found"})

    def test_unknown_status_is_ignored(self) -> None:
        outcome = process_payment_event.apply(args=[{"bookingId": "BK00000000ZZZZ", "status": "on_hold"}]).get()
        self.assertEqual(outcome, {"status": "ignored"})


def test_verify_signature():
    body = b'{"bookingId": "BK1", "status": "paid"}'
    signature = sign_payload(body, "s3cret")

    assert verify_signature(body, signature, "s3cret")
    assert verify_signature(body, signature.upper(), "s3cret")
    assert not verify_signature(body, signature, "other")
    assert not verify_signature(body, None, "s3cret")
