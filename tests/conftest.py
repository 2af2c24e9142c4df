"""
Shared fixtures: fast settings, an in-memory store, a recording mailer and
the wired-up services and app.
"""

import httpx
import pytest

from healthvibe.api.app import create_app
from healthvibe.auth.services import AuthServices
from healthvibe.config import Settings
from healthvibe.integrations.email import EmailService
from healthvibe.storage import InMemoryUserStore


class RecordingEmailService(EmailService):
    """Mailer that keeps every message instead of calling SES."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: list[dict] = []

    async def send(self, to, subject, text_body, html_body=None) -> bool:
        self.sent.append({
            "to": to,
            "subject": subject,
            "text": text_body,
            "html": html_body,
        })
        return True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings with a cheap hash work factor and no external services."""
    return Settings(
        environment="test",
        debug=False,
        jwt_secret_key="test-secret",
        password_hash_iterations=1_000,
        public_base_url="http://app.test",
        aws_access_key_id="",
        aws_secret_access_key="",
        sentry_dsn="",
    )


@pytest.fixture
def store():
    """Fresh in-memory user store."""
    return InMemoryUserStore()


@pytest.fixture
def mailer(settings):
    return RecordingEmailService(settings)


@pytest.fixture
def services(settings, store, mailer):
    """Auth services wired the same way the app wires them."""
    return AuthServices.build(settings, store, mailer)


@pytest.fixture
def app(settings, store, mailer):
    return create_app(settings=settings, store=store, mailer=mailer)


@pytest.fixture
def client(app):
    """HTTP client talking to the app in-process."""
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    )


@pytest.fixture
def registration():
    """Valid registration fields."""
    return {
        "first_name": "Jo",
        "last_name": "Doe",
        "email": "jo@x.io",
        "phone": "+15551234567",
        "password": "secret1",
    }
