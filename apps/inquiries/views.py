"""API views for contact requests."""

from __future__ import annotations

from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore

from apps.users.identity import actor_from_user
from shared.infrastructure.api import result_response

from .serializers import ContactRequestSerializer, ContactRequestStatusSerializer
from .services import get_contact_request_service


class ContactRequestViewSet(viewsets.ViewSet):
    """Anyone may submit a request; listing and handling them is for admins."""

    permission_classes = [permissions.AllowAny]

    def create(self, request):  # type: ignore
        payload = ContactRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_contact_request_service().create_request(payload.validated_data)
        return result_response(result, success_status=status.HTTP_201_CREATED)

    def list(self, request):  # type: ignore
        result = get_contact_request_service().get_all_requests(
            actor_from_user(request.user), request.query_params.get("status") or None
        )
        return result_response(result)

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):  # type: ignore
        payload = ContactRequestStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_contact_request_service().update_request_status(
            pk, payload.validated_data["status"], actor_from_user(request.user)
        )
        return result_response(result)
