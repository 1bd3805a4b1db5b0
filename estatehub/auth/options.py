"""
Configuration for the authorization service.

Values come from environment variables (a ``.env`` file is loaded at import of
``estatehub.base_microservice``) and are exposed as cached FastAPI dependencies
so tests can override them.
"""
import os
from functools import lru_cache
from typing import List, Optional
from pydantic import BaseModel

DEFAULT_EXPIRATION_MINUTES = 10


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class JWTOptions(BaseModel):
    """Signing and lifetime settings for issued tokens."""
    secret: str
    issuer: Optional[str] = None
    audience: Optional[str] = None
    expiration_minutes: int = DEFAULT_EXPIRATION_MINUTES

    @classmethod
    def from_env(cls) -> "JWTOptions":
        return cls(
            secret=os.getenv("JWT_SECRET", "estatehub_development_secret_change_me_32b"),
            issuer=os.getenv("JWT_ISSUER") or None,
            audience=os.getenv("JWT_AUDIENCE") or None,
            expiration_minutes=int(os.getenv("JWT_EXPIRATION_MINUTES", DEFAULT_EXPIRATION_MINUTES)),
        )


class SmtpOptions(BaseModel):
    """Outgoing mail server settings."""
    host: str = "localhost"
    port: int = 25
    user: Optional[str] = None
    password: Optional[str] = None
    sender: str = "noreply@estatehub.local"

    @classmethod
    def from_env(cls) -> "SmtpOptions":
        return cls(
            host=os.getenv("SMTP_HOST", "localhost"),
            port=int(os.getenv("SMTP_PORT", 25)),
            user=os.getenv("SMTP_USER") or None,
            password=os.getenv("SMTP_PASSWORD") or None,
            sender=os.getenv("SMTP_FROM", "noreply@estatehub.local"),
        )


class IdentityOptions(BaseModel):
    """Account policy."""
    require_confirmed_account: bool = False
    token_lifetime_hours: int = 24

    @classmethod
    def from_env(cls) -> "IdentityOptions":
        return cls(
            require_confirmed_account=_env_bool("IDENTITY_REQUIRE_CONFIRMED_ACCOUNT"),
            token_lifetime_hours=int(os.getenv("IDENTITY_TOKEN_LIFETIME_HOURS", 24)),
        )


class AppOptions(BaseModel):
    """Process-level settings."""
    environment: str = "production"
    cors_allowed_origins: List[str] = []
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls) -> "AppOptions":
        origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
        return cls(
            environment=os.getenv("ENVIRONMENT", "production"),
            cors_allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            admin_email=os.getenv("ADMIN_EMAIL") or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
        )


@lru_cache()
def get_jwt_options() -> JWTOptions:
    return JWTOptions.from_env()


@lru_cache()
def get_smtp_options() -> SmtpOptions:
    return SmtpOptions.from_env()


@lru_cache()
def get_identity_options() -> IdentityOptions:
    return IdentityOptions.from_env()


@lru_cache()
def get_app_options() -> AppOptions:
    return AppOptions.from_env()
