"""
Shared fixtures: an in-memory MongoDB (mongomock-motor) under Beanie, test
settings, a recording notifier and an HTTP client wired to the app.
"""

from datetime import timedelta
from types import SimpleNamespace
from typing import List

import pytest
from beanie import PydanticObjectId
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from callisto.config import Settings, get_settings
from callisto.database import init_models
from callisto.errors import DeliveryFailedError
from callisto.main import create_application
from callisto.services.notifier import Notifier, get_notifier
from callisto.services.token_service import TokenService

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789abcdef"


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[tuple] = []

    async def send_otp(self, email: str, name: str, otp: str) -> None:
        if self.fail:
            raise DeliveryFailedError()
        self.sent.append((email, name, otp))


class FakeCompletions:
    """Stands in for AsyncGroq().chat.completions; plays back scripted outcomes."""

    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.models: List[str] = []

    async def create(self, *, model, messages, **kwargs):
        self.models.append(model)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))])


class FakeGroq:
    def __init__(self, outcomes) -> None:
        self.completions = FakeCompletions(outcomes)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret=TEST_SECRET,
        groq_api_key=None,
        smtp_user=None,
        smtp_pass=None,
        roadmap_models=["model-a", "model-b", "model-c"],
    )


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["callisto_test"]
    await init_models(database)
    yield database


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings.jwt_secret, timedelta(days=settings.jwt_expire_days))


@pytest.fixture
def user_id() -> PydanticObjectId:
    return PydanticObjectId()


@pytest.fixture
def app(db, settings, notifier):
    application = create_application()
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_notifier] = lambda: notifier
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def signup_headers(client: AsyncClient, email: str = "ada@example.com") -> dict:
    res = await client.post(
        "/auth/signup", json={"email": email, "name": "Ada", "password": "hunter22"}
    )
    assert res.status_code == 201, res.text
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
async def auth_headers(client) -> dict:
    return await signup_headers(client)
