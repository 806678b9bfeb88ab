"""Contact request handling."""

from __future__ import annotations

import logging
from typing import Any

from apps.store.backend import get_document_store
from apps.users.identity import Actor, require_admin
from shared.application.result import returns_result
from shared.domain.base import new_id
from shared.domain.errors import NotFound, ValidationFailed
from shared.infrastructure.document_store import SERVER_TIMESTAMP, DocumentStore, where

logger = logging.getLogger(__name__)

REQUESTS = 'requests'

REQUEST_STATUSES = ('pending', 'in_progress', 'resolved', 'closed')
REQUIRED_FIELDS = ('name', 'email', 'message')
CONTACT_FIELDS = ('name', 'email', 'phone', 'subject', 'message', 'location')


class ContactRequestService:
    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _render(document) -> dict[str, Any]:
        return dict(document.data, id=document.id)

    @returns_result
    def create_request(self, data: dict[str, Any]) -> dict[str, Any]:
        missing = [name for name in REQUIRED_FIELDS if not str(data.get(name) or '').strip()]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}", fields=missing)

        request_id = new_id()
        document = self.store.create(REQUESTS, request_id, {
            **{name: str(data.get(name) or '').strip() for name in CONTACT_FIELDS},
            'status': 'pending',
            'handledBy': None,
            'createdAt': SERVER_TIMESTAMP,
            'updatedAt': SERVER_TIMESTAMP,
        })
        logger.info(f"Contact request {request_id} received from {document.get('email')}")
        return self._render(document)

    @returns_result
    def get_all_requests(self, actor: Actor | None, status: str | None = None) -> list[dict[str, Any]]:
        require_admin(actor)
        filters = [where('status', '==', status)] if status else []
        documents = self.store.query(REQUESTS, filters, order_by='createdAt', descending=True)
        return [self._render(d) for d in documents]

    @returns_result
    def update_request_status(self, request_id: str, status: str, actor: Actor | None) -> dict[str, Any]:
        require_admin(actor)
        if status not in REQUEST_STATUSES:
            raise ValidationFailed(f"Unknown request status: {status}", status=status)
        if self.store.get(REQUESTS, request_id) is None:
            raise NotFound('request', request_id)

        document = self.store.update(REQUESTS, request_id, {
            'status': status,
            'handledBy': actor.id,
            'updatedAt': SERVER_TIMESTAMP,
        })
        logger.info(f"Contact request {request_id} set to {status} by {actor.id}")
        return self._render(document)


def get_contact_request_service() -> ContactRequestService:
    return ContactRequestService(get_document_store())
