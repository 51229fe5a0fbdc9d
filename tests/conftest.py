"""Shared test fixtures."""
from datetime import datetime
from unittest.mock import patch, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from outreach import import_models
from outreach.database import Base

# Every module that does `from outreach.database import get_session`.
SESSION_CONSUMERS = [
    'outreach.database.get_session',
    'outreach.agents.orchestrator.get_session',
    'outreach.scheduler.get_session',
    'outreach.services.db.get_session',
    'outreach.services.notifications.get_session',
    'outreach.services.inbound.get_session',
    'outreach.routes.agents.get_session',
]

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across sessions."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Session for arranging and asserting. Production code gets its own sessions."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(session_factory):
    """Route every get_session() call to fresh sessions on the test engine."""
    patchers = [patch(target, side_effect=lambda: session_factory()) for target in SESSION_CONSUMERS]
    for p in patchers:
        p.start()
    yield session_factory
    for p in reversed(patchers):
        p.stop()


@pytest.fixture(autouse=True)
def mock_redis():
    """MagicMock Redis client so breakers and token tracking never touch the network."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.hgetall.return_value = {}
    with patch('outreach.extensions.redis_client', mock):
        yield mock


@pytest.fixture(autouse=True)
def _reset_breakers(mock_redis):
    """Give every test fresh breakers bound to the mock Redis."""
    from outreach.services.circuit_breaker import _registry, init_breakers
    saved = dict(_registry)
    _registry.clear()
    init_breakers(mock_redis)
    yield
    _registry.clear()
    _registry.update(saved)


@pytest.fixture
def app():
    """Flask test app."""
    from outreach import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_prospect(db_session):
    """Factory fixture — inserts a prospect and returns it."""
    from outreach.models.prospect import Prospect

    def _make(**overrides):
        defaults = dict(
            business_name='Harbor Bakery',
            contact_name='Dana Reyes',
            email='dana@harborbakery.test',
            city='Portland',
            category='bakery',
            stage='new',
            automation_enabled=True,
        )
        defaults.update(overrides)
        prospect = Prospect(**defaults)
        db_session.add(prospect)
        db_session.commit()
        return prospect
    return _make


@pytest.fixture
def make_sequence(db_session):
    """Factory fixture — inserts a follow-up sequence for a prospect."""
    from outreach.models.follow_up import FollowUpSequence

    def _make(prospect, **overrides):
        defaults = dict(
            prospect_id=prospect.id,
            sequence_step=0,
            max_steps=3,
            days_between='3,7,14',
            is_paused=False,
            next_send_at=NOW,
        )
        defaults.update(overrides)
        sequence = FollowUpSequence(**defaults)
        db_session.add(sequence)
        db_session.commit()
        return sequence
    return _make


@pytest.fixture
def make_context(db_session):
    """Factory fixture — AgentContext on the test session with default settings."""
    from outreach.agents.base import AgentContext
    from outreach.services.db import AgentSettings

    def _make(now=NOW, **settings):
        return AgentContext(session=db_session, settings=AgentSettings(**settings), now=now)
    return _make
