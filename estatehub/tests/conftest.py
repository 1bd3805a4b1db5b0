"""
Shared fixtures for the authorization service tests.

Every test gets its own in-memory SQLite database with the roles and an
administrator seeded, and the FastAPI dependencies for configuration,
database sessions and e-mail delivery are overridden.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "development"

import html
import io
import re
import smtplib
import uuid
from http.cookies import SimpleCookie
from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from estatehub.main import app
from estatehub.base_microservice import Base, get_db_session
from estatehub.auth.dependencies import get_email_service
from estatehub.auth.email_service import EmailSmtpService
from estatehub.auth.identity import seed_identity
from estatehub.auth.models import RoleEntity, Roles, SessionEntity, UserEntity, utcnow
from estatehub.auth.options import (
    AppOptions, IdentityOptions, JWTOptions, SmtpOptions,
    get_app_options, get_identity_options, get_jwt_options,
)
from estatehub.auth.router import REFRESH_COOKIE_NAME

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin12345"
DEFAULT_PASSWORD = "Valid123!@#"


class CapturingEmailService(EmailSmtpService):
    """Keeps outgoing messages in memory instead of talking to an SMTP server."""

    def __init__(self):
        super().__init__(SmtpOptions())
        self.outbox = []
        self.fail = False

    def _send(self, message):
        if self.fail:
            raise smtplib.SMTPException("relay refused")
        self.outbox.append(message)

    def last_link(self):
        """Return (token, user id) from the link of the most recent message."""
        body = self.outbox[-1].get_content()
        href = html.unescape(re.search(r"href='([^']+)'", body).group(1))
        query = parse_qs(urlparse(href).query)
        return query["token"][0], query["id"][0]


class AuthApi:
    """Thin helpers over the HTTP endpoints."""

    def __init__(self, client: AsyncClient):
        self.client = client

    @staticmethod
    def refresh_cookie_header(response):
        for header in response.headers.get_list("set-cookie"):
            if header.startswith(f"{REFRESH_COOKIE_NAME}="):
                return header
        return None

    @classmethod
    def refresh_cookie(cls, response):
        header = cls.refresh_cookie_header(response)
        if header is None:
            return None
        cookie = SimpleCookie()
        cookie.load(header)
        return cookie[REFRESH_COOKIE_NAME].value

    @classmethod
    def cookie_cleared(cls, response) -> bool:
        header = cls.refresh_cookie_header(response)
        return header is not None and "Max-Age=0" in header

    @staticmethod
    def bearer(access_token: str):
        return {"Authorization": f"Bearer {access_token}"}

    async def register(self, email: str, password: str = DEFAULT_PASSWORD, **extra):
        payload = {"email": email, "password": password, "confirmPassword": password}
        payload.update(extra)
        return await self.client.post("/user-registration", json=payload)

    async def login(self, email: str, password: str = DEFAULT_PASSWORD):
        return await self.client.post("/login", json={"email": email, "password": password})

    async def _post_with_cookie(self, path: str, refresh_token):
        self.client.cookies.clear()
        headers = {}
        if refresh_token is not None:
            headers["Cookie"] = f"{REFRESH_COOKIE_NAME}={refresh_token}"
        return await self.client.post(path, headers=headers)

    async def refresh(self, refresh_token):
        return await self._post_with_cookie("/refresh-access-token", refresh_token)

    async def logout(self, refresh_token):
        return await self._post_with_cookie("/logout", refresh_token)


def png_bytes(width: int = 64, height: int = 64) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        await seed_identity(session, ADMIN_EMAIL, ADMIN_PASSWORD)

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def jwt_options():
    return JWTOptions(
        secret="estatehub-test-secret-with-enough-length-0123456789",
        issuer="estatehub-authorization",
        audience="estatehub",
        expiration_minutes=10,
    )


@pytest.fixture
def identity_options():
    return IdentityOptions()


@pytest.fixture
def email_service():
    return CapturingEmailService()


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly and return its id."""
    async def _make_user(email: str, password: str = DEFAULT_PASSWORD, roles=(Roles.USER,), **fields):
        async with session_factory() as session:
            result = await session.execute(select(RoleEntity).where(RoleEntity.name.in_(roles)))
            user_id = uuid.uuid4()
            user = UserEntity(
                id=user_id,
                email=email,
                user_name=f"{email}_{user_id.hex[:8]}",
                display_name=fields.pop("display_name", email),
                hashed_password=UserEntity.get_password_hash(password),
                email_confirmed=fields.pop("email_confirmed", True),
                security_stamp=uuid.uuid4().hex,
                created_at=utcnow(),
                **fields,
            )
            user.roles.extend(result.scalars().all())
            session.add(user)
            await session.commit()
            return user_id

    return _make_user


@pytest.fixture
def count_sessions(session_factory):
    async def _count_sessions(user_id):
        async with session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(SessionEntity).where(SessionEntity.user_id == user_id)
            )
            return result.scalar_one()

    return _count_sessions


@pytest_asyncio.fixture
async def client(session_factory, jwt_options, identity_options, email_service):
    async def override_db_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_jwt_options] = lambda: jwt_options
    app.dependency_overrides[get_identity_options] = lambda: identity_options
    app.dependency_overrides[get_app_options] = lambda: AppOptions(environment="development")
    app.dependency_overrides[get_email_service] = lambda: email_service

    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://test", transport=transport) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def api(client):
    return AuthApi(client)


@pytest.fixture
def confirmation_required(client):
    """Switch the running app to require confirmed e-mails."""
    options = IdentityOptions(require_confirmed_account=True)
    app.dependency_overrides[get_identity_options] = lambda: options
    return options


@pytest_asyncio.fixture
async def admin_token(api):
    response = await api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code == 200
    return response.json()["accessToken"]


@pytest.fixture
def make_png():
    return png_bytes
