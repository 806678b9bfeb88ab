from __future__ import annotations

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.inquiries.services import ContactRequestService


@pytest.fixture
def requests_service(store):
    return ContactRequestService(store)


def test_create_request_requires_contact_fields(requests_service):
    result = requests_service.create_request({"name": "Amina", "message": "  "})

    assert result.code == "validation_failed"
    assert result.error.details["fields"] == ["email", "message"]


def test_request_lifecycle(requests_service, admin, customer):
    created = requests_service.create_request({
        "name": " Amina ",
        "email": "amina@example.com",
        "subject": "Airport pickup",
        "message": "Can you deliver to JKIA?",
    }).unwrap()

    assert created["status"] == "pending"
    assert created["name"] == "Amina"
    assert created["phone"] == ""

    assert requests_service.get_all_requests(customer).code == "admin_required"
    assert [r["id"] for r in requests_service.get_all_requests(admin).unwrap()] == [created["id"]]

    handled = requests_service.update_request_status(created["id"], "in_progress", admin).unwrap()
    assert handled["status"] == "in_progress"
    assert handled["handledBy"] == admin.id

    assert requests_service.get_all_requests(admin, "pending").unwrap() == []
    assert requests_service.update_request_status(created["id"], "archived", admin).code == "validation_failed"
    assert requests_service.update_request_status("nope", "closed", admin).code == "not_found"


@pytest.mark.django_db
def test_contact_request_api():
    client = APIClient()
    url = reverse("contact-request-list")

    created = client.post(url, {
        "name": "Otieno",
        "email": "otieno@example.com",
        "message": "Do you rent with a driver?",
    }, format="json")
    assert created.status_code == status.HTTP_201_CREATED

    assert client.get(url).status_code == status.HTTP_401_UNAUTHORIZED

    admin = get_user_model().objects.create_user(username="desk", password="DeskPass123", is_staff=True)
    client.force_authenticate(admin)
    listed = client.get(url)
    assert [r["email"] for r in listed.data] == ["otieno@example.com"]

    closed = client.post(
        reverse("contact-request-change-status", args=[created.data["id"]]), {"status": "closed"}, format="json",
    )
    assert closed.status_code == status.HTTP_200_OK
    assert closed.data["status"] == "closed"
