# ahaar/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ahaar.core.database import get_db
from ahaar.core.errors import Unauthenticated
from ahaar.core.request_context import bind_identity
from ahaar.services.access_control import Principal, ensure_allowed, ensure_not_revoked
from ahaar.services.assets import AssetStore, get_asset_store
from ahaar.services.auth import decode_access_token
from ahaar.services.mail import MailSender, get_mail_sender
from ahaar.services.resources import ListParams
from ahaar.services.subscription import check_subscription

bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)

_UNAUTHENTICATED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """Principal carried by the Bearer access token."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Access token not found. Please login", headers=_UNAUTHENTICATED_HEADERS)

    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError:
        raise Unauthenticated("Invalid or expired access token", headers=_UNAUTHENTICATED_HEADERS)

    principal = Principal.from_claims(payload)
    request.state.principal = principal
    bind_identity(brand_id=principal.brand_id, user_id=principal.user_id, role=principal.role.value)
    return principal


def get_active_principal(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Principal:
    """Principal that has not been removed from its brand."""
    ensure_not_revoked(db, principal)
    return principal


def require_operation(operation: str):
    def _dependency(principal: Principal = Depends(get_active_principal)) -> Principal:
        ensure_allowed(principal, operation)
        return principal

    return _dependency


def require_active_subscription(
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
) -> Principal:
    if principal.is_super_admin:
        return principal
    check_subscription(db, principal.brand_id)
    return principal


def list_params(
    search: Optional[str] = Query(None, max_length=100),
    brand: Optional[str] = Query(None, max_length=64),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> ListParams:
    return ListParams(search=search, brand=brand, page=page, limit=limit)


def mail_sender() -> MailSender:
    return get_mail_sender()


def asset_store() -> AssetStore:
    return get_asset_store()
