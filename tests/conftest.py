"""
Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database. Players of the
`started_game` fixture are bound to connections "conn-0" .. "conn-4",
in seat order.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers the tables on Base.metadata)
from database import Base, get_db, get_session_factory
from core.game_manager import GameManager


def conn(index: int) -> str:
    return f"conn-{index}"


def seat_players(db, count: int):
    """Create a game and seat `count` players; returns (session_id, player_ids)."""
    game, creator = GameManager.create_game(db, "player-0")
    session_id = game.session_id
    player_ids = [creator.id]
    for index in range(1, count):
        player = GameManager.join_game(db, session_id, f"player-{index}")
        player_ids.append(player.id)
    return session_id, player_ids


def start_with_connections(db, count: int = 5):
    """Seat and start a game, binding player i to connection "conn-i"."""
    session_id, player_ids = seat_players(db, count)
    GameManager.start_game(db, session_id, rng=random.Random(7))
    for index, player_id in enumerate(player_ids):
        GameManager.attach_connection(db, session_id, player_id, conn(index))
    return session_id, player_ids


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """
    A SQLite file database with a regular connection pool, so that two
    Sessions really use two connections (as two server threads would).
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'game.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def started_game(db):
    """A 5-player game in the factionViewed phase, every player connected."""
    return start_with_connections(db)


@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
