"""Shared fixtures: in-memory SQLite, API client, users and trades."""

import os
from datetime import datetime, timezone

from cryptography.fernet import Fernet

# Must be set before tradelog.config is imported
os.environ.setdefault("TL_DATABASE_URL", "sqlite://")
os.environ.setdefault("TL_ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from tradelog.database import create_db_and_tables, get_session
from tradelog.main import app
from tradelog.models.trade import Trade, TradeDirection, TradeStatus
from tradelog.models.user import User
from tradelog.services.auth import create_access_token, hash_pin
from tradelog.services.repository import InMemoryTradeRepository, SqlTradeRepository


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_trade(
    direction: str = "long",
    entry: float = 100.0,
    exit: float | None = None,
    qty: float = 1.0,
    fees: float = 0.0,
    pnl: float | None = None,
    symbol: str = "AAPL",
    owner_id: int = 1,
    **kwargs,
) -> Trade:
    """Unsaved trade; closed when ``exit`` is given."""
    return Trade(
        owner_id=owner_id,
        symbol=symbol,
        direction=TradeDirection(direction),
        status=TradeStatus.CLOSED if exit is not None else TradeStatus.OPEN,
        entry_price=entry,
        exit_price=exit,
        quantity=qty,
        fees=fees,
        pnl=pnl,
        entry_time=kwargs.pop("entry_time", utc(2024, 1, 2, 14, 30)),
        exit_time=kwargs.pop("exit_time", utc(2024, 1, 2, 15, 30) if exit is not None else None),
        **kwargs,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(session) -> User:
    user = User(username="alice", hashed_pin=hash_pin("1234"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_user(session) -> User:
    user = User(username="bob", hashed_pin=hash_pin("9999"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(params=["memory", "sql"])
def repository(request, session, user, other_user):
    """Both repository backends; ``user`` owns id 1, ``other_user`` id 2."""
    if request.param == "memory":
        return InMemoryTradeRepository()
    return SqlTradeRepository(session)


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.username)}"}


@pytest.fixture
def other_headers(other_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(other_user.username)}"}
