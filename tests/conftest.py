# tests/conftest.py

import itertools
import os
import random
from types import SimpleNamespace

# keep the app's own engine off disk; tests bind their own StaticPool engine below
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from api.deps import get_rng
from models import (
    Game,
    Lanpa,
    LanpaMember,
    LanpaStatus,
    MemberStatus,
    Punishment,
    PunishmentSeverity,
    User,
)


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def rng():
    return random.Random(1234)


@pytest.fixture(scope="function")
def client(db_session, rng):
    """TestClient sharing the test session and a seeded tiebreak rng."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rng] = lambda: rng

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(username=None, **preferences):
        n = next(counter)
        user = User(
            username=username or f"player{n}",
            display_name=(username or f"Player {n}").title(),
            notification_preferences=preferences
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_game(db_session):
    def _make(name):
        game = Game(name=name, genre="fps", min_players=2, max_players=16)
        db_session.add(game)
        db_session.commit()
        return game

    return _make


@pytest.fixture
def punishment(db_session):
    punishment = Punishment(
        name="Buys the pizza",
        description="Pays for everyone's dinner",
        severity=PunishmentSeverity.PENALTY,
        point_impact=-5
    )
    db_session.add(punishment)
    db_session.commit()
    return punishment


@pytest.fixture
def party(db_session, make_user, make_game):
    """
    A lanpa with:
    - admin
    - alice, bob, carol: confirmed members
    - dave: invited only (not a member yet)
    - outsider: no membership
    - games a, b, c in the catalog (not suggested yet)
    """
    admin = make_user("admin")
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    dave = make_user("dave")
    outsider = make_user("outsider")

    lanpa = Lanpa(name="Friday Frag", admin_id=admin.id, status=LanpaStatus.DRAFT)
    db_session.add(lanpa)
    db_session.flush()

    for user in (alice, bob, carol):
        db_session.add(LanpaMember(lanpa_id=lanpa.id, user_id=user.id, status=MemberStatus.CONFIRMED))
    db_session.add(LanpaMember(lanpa_id=lanpa.id, user_id=dave.id, status=MemberStatus.INVITED))
    db_session.commit()

    return SimpleNamespace(
        db=db_session,
        lanpa=lanpa,
        admin=admin,
        alice=alice,
        bob=bob,
        carol=carol,
        dave=dave,
        outsider=outsider,
        a=make_game("Counter-Strike"),
        b=make_game("Age of Empires II"),
        c=make_game("Quake III"),
    )
