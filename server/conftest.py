"""Shared fixtures: in-memory database, users and an HTTP client."""

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from signify.config import Settings, get_settings
from signify.db import create_db_engine, create_session_factory, init_models
from signify.main import configure_services, create_app
from signify.models import DocumentCreate, OwnerRef
from signify.services.auth_service import auth_service
from signify.services.document_service import document_service
from signify.services.sequencer import sequencer

BASE_TS = 1_700_000_000_000  # epoch milliseconds


def make_events(count: int, start: int = 0, base_ts: int = BASE_TS) -> list[dict[str, Any]]:
    """Alternating keydown/keyup events with realistic spacing."""
    events = []
    for n in range(start, start + count):
        events.append(
            {
                "event_type": "keydown" if n % 2 == 0 else "keyup",
                "key_code": "KeyA",
                "character": "a",
                "timestamp": base_ts + n * 60,
                "cursor_position": n // 2,
                "sequence_number": n,
            }
        )
    return events


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        log_level="WARNING",
        public_base_url="https://signify.test",
    )


@pytest.fixture(autouse=True)
def configured_services(settings):
    configure_services(settings)
    yield
    configure_services(get_settings())


@pytest.fixture
async def engine(settings):
    engine = create_db_engine(settings)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(session):
    return await auth_service.register(
        session, "author@example.com", "correct-horse-battery", "Ada Author"
    )


@pytest.fixture
async def other_user(session):
    return await auth_service.register(
        session, "reader@example.com", "another-long-password", "Rita Reader"
    )


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_service.create_access_token(user.id)}"}


@pytest.fixture
async def draft(session, user):
    return await document_service.create(
        session, user.id, DocumentCreate(title="My First Essay", content="<p>hello world</p>")
    )


@pytest.fixture
async def published(session, user):
    document = await document_service.create(
        session, user.id, DocumentCreate(title="Published Piece", content="<p>one two three</p>")
    )
    owner = OwnerRef.for_document(document.id)
    events = sequencer.validate_events(owner, make_events(40))
    await document_service.append_keystrokes(session, user.id, document.id, events)
    return await document_service.publish(session, user.id, document.id)


@pytest.fixture
def app(settings, session_factory):
    app = create_app(settings)
    app.state.session_factory = session_factory
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
