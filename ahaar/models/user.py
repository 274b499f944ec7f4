from sqlalchemy import Boolean, Column, DateTime, Integer, String

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=True)

    name = Column(String(100), nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    mobile = Column(String(11), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="regular")

    avatar_id = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)

    banned_user = Column(Boolean, default=False, nullable=False)
    deleted_user = Column(Boolean, default=False, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    mobile_verified = Column(Boolean, default=False, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)


class PasswordHistory(Base):
    """Previous password hashes; only the most recent few are kept per user."""

    __tablename__ = "user_password_history"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class RemovedUser(Base):
    __tablename__ = "removed_users"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
