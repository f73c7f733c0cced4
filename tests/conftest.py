"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from notifyhub.db.base import Base
from notifyhub.db.engine import create_db_engine, create_session_factory
# Import all models to register with Base.metadata
import notifyhub.db.models  # noqa: F401
from notifyhub.models.notification import NotificationRecord, RenderedContent
from notifyhub.repositories.notification_repo import NotificationRepository
from notifyhub.repositories.template_repo import TemplateRepository


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine, so concurrent sessions see each other's commits."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifyhub_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_template(session_factory):
    """Insert a template row; returns its id."""

    async def _make(
        template_id: str = "payment-success-sms",
        name: str = "Payment success",
        channel: str | None = "SMS",
        translations: dict | None = None,
        params: list | None = None,
        active: bool = True,
    ) -> str:
        if translations is None:
            translations = {
                "en": {"subject": "Payment", "body": "Hi ${name}, you paid ${amount} AZN"},
                "az": {"subject": "Ödəniş", "body": "Salam ${name}, ${amount} AZN ödədiniz"},
            }
        if params is None:
            params = [
                {"key": "name", "type": "string", "required": True, "description": None},
                {"key": "amount", "type": "number", "required": True, "description": None},
            ]
        async with session_factory() as session:
            await TemplateRepository(session).create(
                template_id=template_id,
                name=name,
                channel=channel,
                active=active,
                params=params,
                translations=translations,
                created_by="tests",
            )
            await session.commit()
        return template_id

    return _make


@pytest.fixture
def make_notification(session_factory):
    """Insert an already rendered notification row; returns its id."""

    async def _make(
        notification_id: str,
        user_id: str = "user-1",
        created_at: datetime | None = None,
        channel: str = "SMS",
        priority: str = "NORMAL",
        subject: str = "Subject",
        body: str = "Body",
        **status,
    ) -> str:
        record = NotificationRecord(
            id=notification_id,
            template_id="payment-success-sms",
            user_id=user_id,
            channel=channel,
            priority=priority,
            rendered_content={
                "en": RenderedContent(subject=f"{subject} (en)", body=f"{body} (en)"),
                "az": RenderedContent(subject=f"{subject} (az)", body=f"{body} (az)"),
            },
            subject=f"{subject} (az)",
            body=f"{body} (az)",
            created_at=created_at or datetime.now(timezone.utc),
            **status,
        )
        async with session_factory() as session:
            await NotificationRepository(session).create(**record.to_row_fields())
            await session.commit()
        return notification_id

    return _make


@pytest.fixture
def app(db_engine, session_factory):
    """Create a test application instance with in-process queue and change feed."""
    from notifyhub.main import create_app, init_delivery

    _app = create_app()
    _app.state.db_engine = db_engine
    init_delivery(_app, session_factory, None)
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
