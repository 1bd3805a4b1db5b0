"""
Persistence models for the authorization service.

This module defines SQLAlchemy models for:
- Users and their profile data
- Roles
- Login sessions
"""
import uuid
from datetime import datetime, timezone
import bcrypt
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Table, LargeBinary, Uuid
)
from sqlalchemy.orm import relationship
from estatehub.base_microservice import Base
from estatehub.auth.errors import MAX_LENGTH_TOKEN, MAX_EMAIL_LENGTH, MAX_LENGTH_DISPLAY_NAME


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Roles:
    ADMIN = "Admin"
    MODERATOR = "Moderator"
    USER = "User"

    # Highest first; the first match is the role embedded in tokens.
    PRIORITY = (ADMIN, MODERATOR, USER)


# Association table for many-to-many relationship between users and roles
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class UserEntity(Base):
    """Registered account."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(MAX_EMAIL_LENGTH), unique=True, index=True, nullable=False)
    user_name = Column(String(400), unique=True, index=True, nullable=False)
    display_name = Column(String(MAX_LENGTH_DISPLAY_NAME), nullable=False)
    hashed_password = Column(String, nullable=False)
    email_confirmed = Column(Boolean, default=False, nullable=False)
    security_stamp = Column(String(64), nullable=False, default=lambda: uuid.uuid4().hex)

    phone_number = Column(String(32), nullable=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    address = Column(String(255), nullable=True)
    postal_code = Column(String(20), nullable=True)
    company_name = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)

    avatar_data = Column(LargeBinary, nullable=True)
    avatar_content_type = Column(String(50), nullable=True)

    last_active = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    lockout_end = Column(DateTime, nullable=True)

    # Relationships
    roles = relationship("RoleEntity", secondary=user_roles, lazy="selectin")

    def verify_password(self, password: str) -> bool:
        """Check if provided password matches the stored hash."""
        return bcrypt.checkpw(
            password.encode("utf-8"),
            self.hashed_password.encode("utf-8")
        )

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Generate password hash using bcrypt."""
        return bcrypt.hashpw(
            password.encode("utf-8"),
            bcrypt.gensalt()
        ).decode("utf-8")

    def has_role(self, role_name: str) -> bool:
        return any(role.name == role_name for role in self.roles)

    @property
    def role_names(self):
        return [role.name for role in self.roles]

    @property
    def is_suspended(self) -> bool:
        return self.lockout_end is not None and self.lockout_end > utcnow()


class RoleEntity(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, index=True, nullable=False)


class SessionEntity(Base):
    """
    One logged-in device. The refresh token is unique per row; the version
    column makes concurrent refreshes of the same row fail instead of
    silently overwriting each other.
    """
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    access_token = Column(String(MAX_LENGTH_TOKEN), nullable=False)
    refresh_token = Column(String(MAX_LENGTH_TOKEN), unique=True, index=True, nullable=False)
    expiration_date = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
