import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import barista_bot.db as db
from barista_bot.engine import CartLine, MenuCatalog, OrderEngine
from barista_bot.main import app
from barista_bot.models import Base
from barista_bot.nlu import RuleBasedProposer, get_proposer
from barista_bot.routes import limiter


def _line(item_name, quantity=1, size=None, temperature=None, milk=None, modifiers=None):
    """Build an unpriced cart line."""
    return CartLine(
        item_name=item_name,
        quantity=quantity,
        size=size,
        temperature=temperature,
        milk=milk,
        modifiers=modifiers or {},
    )


@pytest.fixture
def make_line():
    """Factory for cart lines: make_line("Latte", size="small", ...)."""
    return _line


@pytest.fixture
def catalog():
    """Menu catalog with the default caps (2 extra shots, 4 syrup pumps)."""
    return MenuCatalog(max_shots=2, max_syrup_pumps=4)


@pytest.fixture
def order_engine(catalog):
    return OrderEngine(catalog)


@pytest.fixture
def proposer(catalog):
    return RuleBasedProposer(catalog)


@pytest.fixture
def db_session():
    """SQLAlchemy session on a fresh in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client():
    """Shared FastAPI TestClient using an in-memory SQLite DB.

    Uses StaticPool so all connections share the same in-memory database.
    The rule-based proposer stands in for the LLM and rate limiting is off.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the db module used by the app
    original_engine, original_session_local = db.engine, db.SessionLocal
    db.engine = engine
    db.SessionLocal = TestingSessionLocal
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db_sess = TestingSessionLocal()
        try:
            yield db_sess
        finally:
            db_sess.close()

    rules = RuleBasedProposer()
    app.dependency_overrides[db.get_db] = override_get_db
    app.dependency_overrides[get_proposer] = lambda: rules
    limiter.enabled = False

    with TestClient(app) as test_client:
        test_client.session_factory = TestingSessionLocal
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
    db.engine = original_engine
    db.SessionLocal = original_session_local
    engine.dispose()
