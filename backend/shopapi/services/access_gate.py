# Overview: Role/ownership authorization decisions.

"""
Role / Ownership Gate

WHY: Authorization is a single pure decision over (role, ownership) so the
whole decision table can be tested exhaustively, instead of role checks
scattered through route handlers.

DECISION:
    Allow  iff  identity.role in override_roles  OR  identity.id == resource_owner_id
    Deny   otherwise (rendered as 403 Forbidden, distinct from 401)

Staff and admin override ownership by default. Customers only reach
resources they own.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from ..errors import Forbidden
from ..models import Role


STAFF_ROLES = frozenset({Role.STAFF, Role.ADMIN})


class Decision(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Identity:
    """Resolved caller identity: who they are and what role they hold."""
    id: int
    role: Role

    @classmethod
    def of(cls, user) -> "Identity":
        return cls(id=user.id, role=Role(user.role))

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def authorize(
    identity: Identity,
    resource_owner_id: int | None,
    override_roles: Iterable[Role] = STAFF_ROLES,
) -> Decision:
    if identity.role in frozenset(override_roles):
        return Decision.ALLOW
    if resource_owner_id is not None and identity.id == resource_owner_id:
        return Decision.ALLOW
    return Decision.DENY


def has_role(identity: Identity, roles: Iterable[Role]) -> bool:
    return identity.role in frozenset(roles)


def require(
    identity: Identity,
    resource_owner_id: int | None,
    override_roles: Iterable[Role] = STAFF_ROLES,
) -> None:
    """Raise Forbidden unless authorize() allows."""
    if authorize(identity, resource_owner_id, override_roles) is Decision.DENY:
        raise Forbidden()


def require_role(identity: Identity, roles: Iterable[Role]) -> None:
    """Raise Forbidden unless the identity holds one of roles."""
    if not has_role(identity, roles):
        raise Forbidden()
