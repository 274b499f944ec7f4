"""User account lifecycle: registration, lookup and password history."""
from __future__ import annotations

import logging
import secrets

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ahaar.core.errors import Conflict, Unauthenticated, ValidationError
from ahaar.models.brand import Brand
from ahaar.models.user import PasswordHistory, User
from ahaar.services.access_control import Principal, Role
from ahaar.services.auth import hash_password, verify_password
from ahaar.services.resources import ACCOUNT_ID_BYTES, ensure_unique, generate_external_id
from ahaar.services.validation import normalize_identifier
from ahaar.utils.clock import utcnow
from ahaar.utils.slug import slugify

logger = logging.getLogger(__name__)

PASSWORD_HISTORY_SIZE = 3
BOOTSTRAP_PREFIX = "[BOOTSTRAP]"
USERNAME_MAX_LENGTH = 30
USERNAME_ATTEMPTS = 5


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.user_id, brand_id=user.brand_id, role=Role.parse(user.role))


def _matches_identifier(value: str):
    """Any account that would answer a login with ``value``."""
    return or_(User.username == value, User.email == value, User.mobile == value)


def find_by_identifier(db: Session, identifier: str) -> User | None:
    matches = db.query(User).filter(_matches_identifier(identifier)).limit(2).all()
    if len(matches) > 1:
        logger.warning("login identifier matched %d accounts", len(matches))
        raise Unauthenticated("Invalid credentials")
    return matches[0] if matches else None


def ensure_contact_available(db: Session, *, email: str | None, mobile: str | None, exclude_id: int | None = None) -> None:
    if email:
        ensure_unique(db, User, _matches_identifier(email), message="User already exists with this email", exclude_id=exclude_id)
    if mobile:
        ensure_unique(db, User, _matches_identifier(mobile), message="User already exists with this mobile", exclude_id=exclude_id)


def ensure_username_available(db: Session, username: str, exclude_id: int | None = None) -> None:
    ensure_unique(db, User, _matches_identifier(username), message="Username already taken", exclude_id=exclude_id)


def derive_username(db: Session, email: str) -> str:
    """Username for a self-registered account, taken from the email local part.

    A random suffix is added when the local part is all digits or already
    answers a login for another account.
    """
    base = normalize_identifier(email.split("@", 1)[0])[:USERNAME_MAX_LENGTH]
    candidate = base if base and not base.isdigit() else None
    for _ in range(USERNAME_ATTEMPTS):
        if candidate and db.query(User.id).filter(_matches_identifier(candidate)).first() is None:
            return candidate
        candidate = f"{base[:USERNAME_MAX_LENGTH - 7]}-{secrets.token_hex(3)}"
    raise Conflict("Account could not be created. Username or contact already in use")


def remember_password(db: Session, user_id: str, password_hash: str) -> None:
    """Journal ``password_hash`` and keep only the newest entries."""
    db.add(PasswordHistory(user_id=user_id, password_hash=password_hash, created_at=utcnow()))
    db.flush()
    stale = (
        db.query(PasswordHistory.id)
        .filter(PasswordHistory.user_id == user_id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .offset(PASSWORD_HISTORY_SIZE)
        .all()
    )
    if stale:
        db.query(PasswordHistory).filter(PasswordHistory.id.in_([row.id for row in stale])).delete(
            synchronize_session=False
        )


def is_recent_password(db: Session, user: User, password: str) -> bool:
    if verify_password(password, user.password_hash):
        return True
    recent = (
        db.query(PasswordHistory.password_hash)
        .filter(PasswordHistory.user_id == user.user_id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .limit(PASSWORD_HISTORY_SIZE)
        .all()
    )
    return any(verify_password(password, row.password_hash) for row in recent)


def set_password(db: Session, user: User, password: str, *, updated_by: str) -> None:
    if is_recent_password(db, user, password):
        raise ValidationError(f"You can't reuse any of your last {PASSWORD_HISTORY_SIZE} passwords")
    user.password_hash = hash_password(password)
    user.updated_by = updated_by
    user.updated_at = utcnow()
    remember_password(db, user.user_id, user.password_hash)


def register_account(
    db: Session,
    *,
    name: str,
    email: str,
    mobile: str,
    brand_name: str,
    password: str,
) -> tuple[Brand, User]:
    """Create a brand and its chairman in one transaction.

    Either both rows are committed or neither is.
    """
    ensure_contact_available(db, email=email, mobile=mobile)

    now = utcnow()
    user_id = generate_external_id(db, User, nbytes=ACCOUNT_ID_BYTES)
    brand = Brand(
        brand_id=generate_external_id(db, Brand, nbytes=ACCOUNT_ID_BYTES),
        brand_name=brand_name,
        brand_slug=slugify(brand_name),
        subscription_status=False,
        created_by=user_id,
        created_at=now,
    )
    user = User(
        user_id=user_id,
        brand_id=brand.brand_id,
        name=name,
        username=derive_username(db, email),
        email=email,
        mobile=mobile,
        password_hash=hash_password(password),
        role=Role.CHAIRMAN.value,
        email_verified=False,
        created_by=user_id,
        created_at=now,
    )

    try:
        db.add(brand)
        db.add(user)
        db.flush()
        remember_password(db, user.user_id, user.password_hash)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("registration rolled back email=%s reason=%s", email, exc.orig)
        raise Conflict("Account could not be created. Username or contact already in use") from exc

    db.refresh(brand)
    db.refresh(user)
    logger.info("account registered user_id=%s brand_id=%s", user.user_id, brand.brand_id)
    return brand, user


def ensure_super_admin(db: Session, *, email: str, password: str, name: str, mobile: str) -> tuple[User, bool]:
    """Create the platform super admin once; returns ``(user, created)``."""
    email = email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing is not None:
        if existing.role != Role.SUPER_ADMIN.value:
            raise RuntimeError(f"{email} already belongs to a {existing.role} account")
        logger.info("%s super admin exists email=%s", BOOTSTRAP_PREFIX, email)
        return existing, False

    user = User(
        user_id=generate_external_id(db, User, nbytes=ACCOUNT_ID_BYTES),
        brand_id=None,
        name=name,
        username=derive_username(db, email),
        email=email,
        mobile=mobile,
        password_hash=hash_password(password),
        role=Role.SUPER_ADMIN.value,
        email_verified=True,
        created_at=utcnow(),
    )
    db.add(user)
    db.flush()
    remember_password(db, user.user_id, user.password_hash)
    db.commit()
    db.refresh(user)
    logger.info("%s super admin created email=%s", BOOTSTRAP_PREFIX, email)
    return user, True
