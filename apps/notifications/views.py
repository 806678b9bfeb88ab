"""API views for notifications."""

from __future__ import annotations

from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore

from apps.users.identity import actor_from_user
from shared.infrastructure.api import result_response

from .serializers import NotificationSerializer
from .services import get_notification_service


def render_notifications(notifications):
    return NotificationSerializer(notifications, many=True).data


class NotificationViewSet(viewsets.ViewSet):
    """Viewset to list and mark notifications of the authenticated user."""

    permission_classes = [permissions.IsAuthenticated]

    def list(self, request):  # type: ignore
        unread_only = request.query_params.get("unread") in ("1", "true")
        result = get_notification_service().list_for_user(actor_from_user(request.user), unread_only)
        return result_response(result, render_notifications)

    @action(detail=True, methods=["post"])
    def mark_read(self, request, pk=None):  # type: ignore
        result = get_notification_service().mark_read(pk, actor_from_user(request.user))
        return result_response(result, lambda notification: NotificationSerializer(notification).data)

    @action(detail=False, methods=["post"])
    def mark_all_read(self, request):  # type: ignore
        result = get_notification_service().mark_all_read(actor_from_user(request.user))
        return result_response(result, lambda count: {"marked": count})

    @action(detail=False, methods=["get"])
    def unread_count(self, request):  # type: ignore
        result = get_notification_service().unread_count(actor_from_user(request.user))
        return result_response(result, lambda count: {"unread": count})
