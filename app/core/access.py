"""
Access policy.

Pure predicates over an actor's role claims and a target salon id. The
claims come from the verified JWT and are trusted as given; nothing here
touches the database.

Hierarchy: super admin satisfies every check, a salon admin is also
salon staff of the same salon.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from app.core.errors import PermissionDeniedError

SUPER_ADMIN = "super_admin"
SALON_ADMIN = "salon_admin"
SALON_STAFF = "salon_staff"
USER = "user"

APP_ROLES = (SUPER_ADMIN, SALON_ADMIN, SALON_STAFF, USER)
SALON_ROLES = (SALON_ADMIN, SALON_STAFF)


@dataclass(frozen=True)
class Membership:
    salon_id: int
    role: str


@dataclass(frozen=True)
class Actor:
    user_id: int
    phone: Optional[str] = None
    roles: tuple = ()
    salon_memberships: tuple = field(default_factory=tuple)

    @classmethod
    def from_claims(cls, claims: dict) -> "Actor":
        memberships = tuple(
            Membership(salon_id=int(m["salon_id"]), role=m["role"])
            for m in claims.get("salon_memberships") or []
        )
        return cls(
            user_id=int(claims["sub"]),
            phone=claims.get("phone"),
            roles=tuple(claims.get("roles") or ()),
            salon_memberships=memberships,
        )

    @property
    def salon_ids(self) -> List[int]:
        return [m.salon_id for m in self.salon_memberships]


def is_super_admin(actor: Optional[Actor]) -> bool:
    return actor is not None and SUPER_ADMIN in actor.roles


def is_salon_admin(actor: Optional[Actor], salon_id: int) -> bool:
    if is_super_admin(actor):
        return True
    if actor is None:
        return False
    return any(m.salon_id == salon_id and m.role == SALON_ADMIN for m in actor.salon_memberships)


def is_salon_staff(actor: Optional[Actor], salon_id: int) -> bool:
    """Any membership of the salon counts, admins included."""
    if is_super_admin(actor):
        return True
    if actor is None:
        return False
    return any(m.salon_id == salon_id for m in actor.salon_memberships)


def is_owner(actor: Optional[Actor], user_id: int) -> bool:
    return actor is not None and actor.user_id == user_id


def can_view_salon_contact(actor: Optional[Actor], salon_id: int) -> bool:
    return is_salon_staff(actor, salon_id)


def require_super_admin(actor: Optional[Actor]) -> None:
    if not is_super_admin(actor):
        raise PermissionDeniedError("Super admin access required")


def require_salon_admin(actor: Optional[Actor], salon_id: int) -> None:
    if not is_salon_admin(actor, salon_id):
        raise PermissionDeniedError("Salon admin access required")


def require_salon_staff(actor: Optional[Actor], salon_id: int) -> None:
    if not is_salon_staff(actor, salon_id):
        raise PermissionDeniedError("Salon staff access required")
