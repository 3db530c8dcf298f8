# tests/conftest.py
import os
import tempfile

# Settings are read at import time, so the environment must be in place first
os.environ.update({
    "PROJECT_NAME": "AI Business Hub Test",
    "LOG_LEVEL": "DEBUG",
    "MONGODB_URI": "mongodb://localhost:27017/bizhub_test",
    "SECRET_KEY": "test-secret-key",
    "ALGORITHM": "HS256",
    "RATE_LIMIT_ENABLED": "false",
    "EMAIL_ALERTS_ENABLED": "false",
    "ADMIN_EMAILS": "boss@example.com",
    "OPENAI_API_KEY": "",
    "SMTP_USER": "",
    "SMTP_PASS": "",
    "TWILIO_ACCOUNT_SID": "",
    "TWILIO_AUTH_TOKEN": "",
    "TWILIO_WHATSAPP_NUMBER": "",
    "TWILIO_SMS_NUMBER": "",
    "UPLOAD_DIR": tempfile.mkdtemp(prefix="bizhub-uploads-"),
})

from typing import AsyncGenerator, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from bizhub.core.config import settings  # noqa: E402
from bizhub.core.database import get_database  # noqa: E402
from bizhub.core.security import create_user_token, get_password_hash  # noqa: E402
from bizhub.main import app as fastapi_app  # noqa: E402
from bizhub.modules.users.models import UserCreateInternal, UserInDB  # noqa: E402
from bizhub.modules.users.repository import UserRepository  # noqa: E402
from bizhub.services.email_service import EmailResult, EmailService, get_email_service  # noqa: E402
from bizhub.services.twilio_service import ProviderResult, TwilioMessagingService, get_twilio_service  # noqa: E402
from bizhub.websocket.connection_manager import chat_manager, notification_manager  # noqa: E402

DEFAULT_PASSWORD = "secret123"


class FakeEmailService(EmailService):
    """Records outgoing mail instead of talking to SMTP."""

    def __init__(self, fail_with: Optional[str] = None):
        super().__init__(settings.model_copy(update={"SMTP_USER": "bot@example.com", "SMTP_PASS": "pw"}))
        self.sent: List[Dict[str, Optional[str]]] = []
        self.fail_with = fail_with

    async def send_email(self, to, subject, html=None, text=None) -> EmailResult:
        if self.fail_with:
            return EmailResult(success=False, recipient=to, code=self.fail_with, error="SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return EmailResult(success=True, recipient=to, message_id=f"<{len(self.sent)}@example.com>")


class FakeTwilioService(TwilioMessagingService):
    """Configured Twilio wrapper whose HTTP call is replaced by a recorder."""

    def __init__(self):
        super().__init__(settings.model_copy(update={
            "TWILIO_ACCOUNT_SID": "AC123",
            "TWILIO_AUTH_TOKEN": "token",
            "TWILIO_WHATSAPP_NUMBER": "+14155238886",
            "TWILIO_SMS_NUMBER": "+15005550006",
        }))
        self.sent: List[Dict[str, str]] = []
        self.fail_code: Optional[str] = None

    async def _create_message(self, sender: str, recipient: str, body: str) -> ProviderResult:
        if self.fail_code:
            return ProviderResult(success=False, to=recipient, code=self.fail_code, error="Provider rejected message")
        self.sent.append({"from": sender, "to": recipient, "body": body})
        return ProviderResult(success=True, to=recipient, sid=f"SM{len(self.sent):032d}", status="queued")


@pytest.fixture(autouse=True)
def reset_socket_managers():
    yield
    notification_manager.active_connections.clear()
    chat_manager.active_connections.clear()


@pytest_asyncio.fixture(scope="function")
async def db():
    client = AsyncMongoMockClient()
    yield client["bizhub_test"]


@pytest.fixture
def app(db):
    fastapi_app.dependency_overrides[get_database] = lambda: db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def fake_email(app) -> FakeEmailService:
    service = FakeEmailService()
    app.dependency_overrides[get_email_service] = lambda: service
    return service


@pytest.fixture
def fake_twilio(app) -> FakeTwilioService:
    service = FakeTwilioService()
    app.dependency_overrides[get_twilio_service] = lambda: service
    return service


@pytest.fixture
def make_user(db):
    async def _make(
        name: str = "Owner",
        email: Optional[str] = None,
        role: str = "user",
        owner_id=None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
        phone: Optional[str] = None,
    ) -> UserInDB:
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        return await UserRepository(db).create(UserCreateInternal(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
            owner_id=owner_id,
            phone=phone,
            is_active=is_active,
        ))
    return _make


def auth_headers(user: UserInDB) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest_asyncio.fixture
async def owner(make_user) -> UserInDB:
    return await make_user("Olivia Owner", "olivia@example.com")


@pytest.fixture
def owner_headers(owner) -> Dict[str, str]:
    return auth_headers(owner)


@pytest_asyncio.fixture
async def admin(make_user) -> UserInDB:
    return await make_user("Ada Admin", "ada@example.com", role="admin")


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def failing_email(app) -> FakeEmailService:
    service = FakeEmailService(fail_with="AUTH_FAILED")
    app.dependency_overrides[get_email_service] = lambda: service
    return service
