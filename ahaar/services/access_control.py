"""Tenant isolation and role checks.

Every handler derives its query scope and its permission decisions from this
module. Non super-admin principals are always pinned to their own brand; a
client supplied brand filter is ignored for them rather than validated.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ahaar.core.errors import Forbidden, RevokedIdentity, Unauthenticated
from ahaar.models.user import RemovedUser

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    CHAIRMAN = "chairman"
    ADMIN = "admin"
    REGULAR = "regular"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "Role":
        normalized = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError as exc:
            raise Unauthenticated("Invalid role in credentials") from exc


ROLE_RANK = {
    Role.SUPER_ADMIN: 4,
    Role.CHAIRMAN: 3,
    Role.ADMIN: 2,
    Role.REGULAR: 1,
}

# Roles a brand authority may hand out to staff accounts.
ASSIGNABLE_ROLES = frozenset({Role.ADMIN, Role.REGULAR})

AUTHORITY = frozenset({Role.SUPER_ADMIN, Role.CHAIRMAN, Role.ADMIN})
BRAND_AUTHORITY = frozenset({Role.CHAIRMAN, Role.ADMIN})
BRAND_MEMBERS = frozenset({Role.CHAIRMAN, Role.ADMIN, Role.REGULAR})
PLATFORM = frozenset({Role.SUPER_ADMIN})

POLICY: dict[str, frozenset[Role]] = {
    "brand.update_info": BRAND_AUTHORITY,
    "brand.update_logo": BRAND_AUTHORITY,
    "brand.list_all": PLATFORM,
    "plan.create": PLATFORM,
    "plan.purchase": BRAND_MEMBERS,
    "user.list": AUTHORITY,
    "user.create_account": BRAND_AUTHORITY,
    "user.delete": AUTHORITY,
    "user.change_credentials": AUTHORITY,
    "supplier.create": BRAND_AUTHORITY,
    "supplier.update": BRAND_AUTHORITY,
    "supplier.delete": BRAND_AUTHORITY,
    "metrics.read": PLATFORM,
}


@dataclass(frozen=True)
class Principal:
    user_id: str
    brand_id: str | None
    role: Role

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    def claims(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "brand_id": self.brand_id, "role": self.role.value}

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal":
        user_id = claims.get("user_id")
        if not user_id or not isinstance(user_id, str):
            raise Unauthenticated("Invalid access token. Please login")
        role = Role.parse(claims.get("role"))
        brand_id = claims.get("brand_id") or None
        if brand_id is None and role is not Role.SUPER_ADMIN:
            raise Unauthenticated("Invalid access token. Please login")
        return cls(user_id=user_id, brand_id=brand_id, role=role)


def _log_denied(reason: str, principal: Principal, operation: str | None) -> None:
    logger.warning(
        "Access denied (%s): user_id=%s role=%s brand_id=%s operation=%s",
        reason,
        principal.user_id,
        principal.role.value,
        principal.brand_id,
        operation,
    )


def is_allowed(operation: str, role: Role) -> bool:
    allowed = POLICY.get(operation)
    if allowed is None:
        raise KeyError(f"Unknown operation: {operation}")
    return role in allowed


def ensure_allowed(principal: Principal, operation: str) -> None:
    if not is_allowed(operation, principal.role):
        _log_denied("role_denied", principal, operation)
        raise Forbidden("Forbidden access. Only authority can access")


def is_revoked(db: Session, user_id: str) -> bool:
    return db.query(RemovedUser.id).filter(RemovedUser.user_id == user_id).first() is not None


def ensure_not_revoked(db: Session, principal: Principal) -> None:
    if is_revoked(db, principal.user_id):
        _log_denied("revoked", principal, None)
        raise RevokedIdentity()


def require_brand(principal: Principal) -> str:
    """Brand a new tenant entity is stamped with."""
    if not principal.brand_id:
        _log_denied("no_brand", principal, None)
        raise Forbidden("Brand not found. Only brand holder can perform this action")
    return principal.brand_id


def can_manage(actor_role: Role, target_role: Role) -> bool:
    return actor_role.rank >= target_role.rank


def ensure_can_manage(principal: Principal, target_role: Role, target_brand_id: str | None) -> None:
    if not principal.is_super_admin and target_brand_id != principal.brand_id:
        _log_denied("tenant_mismatch", principal, None)
        raise Forbidden("Forbidden access. User belongs to another brand")
    if not can_manage(principal.role, target_role):
        _log_denied("seniority", principal, None)
        raise Forbidden("Forbidden access. You can't edit your senior")


def search_predicate(search: str, columns: Iterable[Any]):
    return or_(*(column.icontains(search, autoescape=True) for column in columns))


def resolve_scope(
    principal: Principal,
    brand_column: Any,
    *,
    search: str | None = None,
    search_columns: Sequence[Any] = (),
    brand_filter: str | None = None,
) -> list:
    """Return the SQL criteria limiting what ``principal`` may see.

    super_admin: search wins over the brand filter; neither means every brand.
    Everyone else: own brand only, optionally AND-ed with the search predicate.
    """
    search = (search or "").strip() or None
    brand_filter = (brand_filter or "").strip() or None

    if principal.is_super_admin:
        if search and search_columns:
            return [search_predicate(search, search_columns)]
        if brand_filter:
            return [brand_column == brand_filter]
        return []

    criteria = [brand_column == require_brand(principal)]
    if search and search_columns:
        criteria.append(search_predicate(search, search_columns))
    return criteria


def owned_by(principal: Principal, brand_column: Any) -> list:
    """Criteria for single-row reads and writes: super_admin is global, others own brand."""
    if principal.is_super_admin:
        return []
    return [brand_column == require_brand(principal)]
