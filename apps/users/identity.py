"""Identity adapter.

Turns the authenticated Django user into the ``Actor`` the rental core
works with: an id and a role. Authentication itself (JWT, sessions) is
handled by Django REST Framework.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model  # type: ignore
from django.db.models import Q  # type: ignore

from shared.conf import rental_setting
from shared.domain.errors import AdminRequired, AuthRequired


class Role:
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """The identity a request acts as."""

    id: str
    role: str = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def is_admin_user(user) -> bool:
    if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
        return True
    groups = getattr(user, "groups", None)
    return bool(groups is not None and groups.filter(name=rental_setting("ADMIN_GROUP")).exists())


def actor_from_user(user) -> Actor | None:
    """Return the actor for a Django user, or None when anonymous."""
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    role = Role.ADMIN if is_admin_user(user) else Role.USER
    return Actor(id=str(user.pk), role=role)


def require_actor(actor: Actor | None, message: str = "") -> Actor:
    if actor is None:
        raise AuthRequired(message or "Authentication required")
    return actor


def require_admin(actor: Actor | None) -> Actor:
    require_actor(actor)
    if not actor.is_admin:
        raise AdminRequired("Admin access required")
    return actor


def admin_user_ids() -> list[str]:
    """Ids of every active admin, used as notification recipients."""
    user_model = get_user_model()
    admins = user_model.objects.filter(is_active=True).filter(
        Q(is_staff=True) | Q(is_superuser=True) | Q(groups__name=rental_setting("ADMIN_GROUP"))
    )
    return [str(pk) for pk in admins.values_list("pk", flat=True).distinct()]
