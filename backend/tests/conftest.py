import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from savequest import models  # noqa: F401
from savequest.database import Base, get_db
from savequest.deps import get_plaid
from savequest.main import app
from savequest.models import Transaction
from savequest.security import require_api_auth
from savequest.services.plaid_client import PlaidClient
from savequest.services.seeder import seed_challenges


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now += timedelta(days=days, hours=hours)


class PlaidStub:
    """httpx.MockTransport handler answering Plaid paths from a dict.

    ``routes`` maps a path to a JSON body, a ``(status, body)`` pair, or a
    callable taking the parsed request JSON.  Every call is recorded.
    """

    def __init__(self):
        self.routes: dict = {}
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.calls.append((request.url.path, body))
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error_code": "NOT_FOUND", "error_message": "no stub"})
        if callable(route):
            route = route(body)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status, payload = route
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=route)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db):
    seed_challenges(db)
    return db


@pytest.fixture
def plaid_stub():
    return PlaidStub()


@pytest.fixture
def plaid(plaid_stub):
    client = PlaidClient("client-id", "secret", "sandbox", transport=httpx.MockTransport(plaid_stub))
    yield client
    client.close()


@pytest.fixture
def client(seeded_db, plaid):
    def _get_db():
        yield seeded_db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_plaid] = lambda: plaid
    app.dependency_overrides[require_api_auth] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_txn():
    """Plain transaction objects for the pure rule evaluator."""
    counter = iter(range(1, 10_000))

    def _make(day, amount_cents=1000, detailed=None, primary=None, merchant=None, authorized=None):
        return SimpleNamespace(
            transaction_id=f"t{next(counter):04d}",
            posted_date=day,
            authorized_date=authorized,
            effective_date=authorized or day,
            amount_cents=amount_cents,
            name=merchant,
            merchant_name=merchant,
            category_primary=primary,
            category_detailed=detailed,
        )

    return _make


@pytest.fixture
def add_txn(db):
    """Insert a ``Transaction`` row for a user and commit."""
    counter = iter(range(1, 10_000))

    def _add(user_id, day, amount_cents=1000, detailed=None, primary=None, merchant=None, authorized=None):
        txn = Transaction(
            user_id=user_id,
            transaction_id=f"db{next(counter):04d}",
            posted_date=day,
            authorized_date=authorized,
            amount_cents=amount_cents,
            merchant_name=merchant,
            category_primary=primary,
            category_detailed=detailed,
            pending=False,
        )
        db.add(txn)
        db.commit()
        return txn

    return _add
