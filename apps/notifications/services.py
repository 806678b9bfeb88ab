"""Notification services: stored in-app notifications and e-mail."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils.html import strip_tags  # type: ignore

from apps.store.backend import get_document_store
from apps.users.identity import Actor, admin_user_ids, require_actor
from shared.application.result import returns_result
from shared.domain.base import new_id
from shared.domain.errors import NotFound
from shared.infrastructure.document_store import SERVER_TIMESTAMP, DocumentStore, where

logger = logging.getLogger(__name__)

NOTIFICATIONS = 'notifications'


class NotificationType:
    BOOKING = 'booking'
    PAYMENT = 'payment'
    ADMIN = 'admin'


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(recipient_email: str, subject: str, html_message: str) -> bool:
    """
    Send one e-mail through the configured Django mail backend.

    Returns:
        bool: True if the message was handed to the backend
    """
    try:
        send_mail(
            subject=subject,
            message=strip_tags(html_message),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            html_message=html_message,
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def send_booking_confirmation_email(booking) -> bool:
    """Confirmation of a paid booking, sent to the customer."""
    subject = f"Booking {booking.id} confirmed"
    html_message = f"""
    <html>
    <body>
        <h2>Hello {booking.customer_name or 'there'},</h2>
        <p>Your payment was received and your booking is confirmed.</p>

        <h3>Booking details:</h3>
        <ul>
            <li><strong>Booking:</strong> {booking.id}</li>
            <li><strong>Pickup:</strong> {booking.pickup_date.strftime('%d.%m.%Y')}</li>
            <li><strong>Return:</strong> {booking.dropoff_date.strftime('%d.%m.%Y')}</li>
            <li><strong>Days:</strong> {booking.total_days}</li>
            <li><strong>Total:</strong> {booking.total_amount}</li>
        </ul>
    </body>
    </html>
    """
    return send_email_notification(booking.customer_email, subject, html_message)


# ============================================================================
# IN-APP NOTIFICATIONS
# ============================================================================

class NotificationService:
    """
    Stores notifications in the ``notifications`` collection

    ``admin_ids`` returns the user ids that receive admin notifications.
    """

    def __init__(self, store: DocumentStore, admin_ids: Callable[[], Iterable[str]] = admin_user_ids):
        self.store = store
        self.admin_ids = admin_ids

    def notify(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> str:
        notification_id = new_id()
        self.store.create(NOTIFICATIONS, notification_id, {
            'userId': str(user_id),
            'type': type,
            'title': title,
            'message': message,
            'data': data or {},
            'read': False,
            'createdAt': SERVER_TIMESTAMP,
        })
        logger.debug(f"Notification {notification_id} ({type}) stored for user {user_id}")
        return notification_id

    def notify_admins(self, title: str, message: str, data: dict[str, Any] | None = None) -> int:
        admins = list(self.admin_ids())
        batch = self.store.batch()
        for admin_id in admins:
            batch.create(NOTIFICATIONS, new_id(), {
                'userId': str(admin_id),
                'type': NotificationType.ADMIN,
                'title': title,
                'message': message,
                'data': data or {},
                'read': False,
                'createdAt': SERVER_TIMESTAMP,
            })
        self.store.commit(batch)
        return len(admins)

    def _owned(self, notification_id: str, actor: Actor):
        document = self.store.get(NOTIFICATIONS, notification_id)
        if document is None or document.get('userId') != actor.id:
            raise NotFound('notification', notification_id)
        return document

    @staticmethod
    def _render(document) -> dict[str, Any]:
        return dict(document.data, id=document.id)

    @returns_result
    def list_for_user(self, actor: Actor | None, unread_only: bool = False) -> list[dict]:
        require_actor(actor)
        filters = [where('userId', '==', actor.id)]
        if unread_only:
            filters.append(where('read', '==', False))
        documents = self.store.query(NOTIFICATIONS, filters, order_by='createdAt', descending=True)
        return [self._render(d) for d in documents]

    @returns_result
    def unread_count(self, actor: Actor | None) -> int:
        require_actor(actor)
        return len(self.store.query(
            NOTIFICATIONS, [where('userId', '==', actor.id), where('read', '==', False)],
        ))

    @returns_result
    def mark_read(self, notification_id: str, actor: Actor | None) -> dict:
        require_actor(actor)
        self._owned(notification_id, actor)
        return self._render(self.store.update(NOTIFICATIONS, notification_id, {'read': True}))

    @returns_result
    def mark_all_read(self, actor: Actor | None) -> int:
        require_actor(actor)
        unread = self.store.query(
            NOTIFICATIONS, [where('userId', '==', actor.id), where('read', '==', False)],
        )
        batch = self.store.batch()
        for document in unread:
            batch.update(NOTIFICATIONS, document.id, {'read': True})
        self.store.commit(batch)
        return len(unread)


def get_notification_service() -> NotificationService:
    return NotificationService(get_document_store())
