import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.dialects.sqlite import base as sqlite_base
from sqlalchemy.orm import sessionmaker

import callflow.models  # noqa: F401 (register models with Base.metadata)
from callflow.api.v1.endpoints.webhooks import get_inbound_router, get_webhook_urls
from callflow.core.config import settings
from callflow.core.database import Base, get_db
from callflow.main import app as fastapi_app
from callflow.models import CallRoutingRule, PhoneLine
from callflow.services.inbound_router import InboundCallRouter
from callflow.services.telephony.twilio import WebhookUrls

settings.DEBUG = True

# ---------------------------------------------------------------------------
# SQLite compatibility for PostgreSQL-specific types (JSONB)
# ---------------------------------------------------------------------------
sqlite_base.SQLiteTypeCompiler.visit_JSONB = lambda self, type_, **kw: self.visit_JSON(type_, **kw)

# In-memory SQLite for tests, no PostgreSQL dependency needed
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_BASE_URL = "https://crm.example.com"


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a test database session."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    """Sessionmaker on the shared test engine.

    Sessions it creates see data committed through ``db`` (StaticPool).
    """
    return TestSessionLocal


@pytest.fixture
def webhook_urls() -> WebhookUrls:
    return WebhookUrls.from_base(TEST_BASE_URL, settings.API_V1_PREFIX)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def phone_line(db, user_id) -> PhoneLine:
    """An active default line whose owner rings on +79161234567."""
    line = PhoneLine(
        user_id=user_id,
        phone_number="+74951234567",
        display_name="Sales",
        is_default=True,
        forward_to="+79161234567",
    )
    db.add(line)
    db.commit()
    db.refresh(line)
    return line


@pytest.fixture
def make_rule(db, phone_line):
    """Factory inserting rules directly, bypassing request validation."""
    counter = {"position": 0}

    def _make_rule(**kwargs) -> CallRoutingRule:
        values = {
            "phone_line_id": phone_line.id,
            "name": f"Rule {counter['position']}",
            "priority": 0,
            "position": counter["position"],
            "condition": "always",
            "action": {"type": "voicemail"},
        }
        values.update(kwargs)
        counter["position"] += 1
        rule = CallRoutingRule(**values)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make_rule


@pytest.fixture
def client(db, webhook_urls):
    """TestClient with overridden DB and routing dependencies."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_inbound_router] = lambda: InboundCallRouter(TestSessionLocal)
    fastapi_app.dependency_overrides[get_webhook_urls] = lambda: webhook_urls
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
