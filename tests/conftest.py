from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from database import Base
from core.jam_manager import JamManager
from core.user_manager import UserManager

NOW = datetime(2030, 1, 1, 12, 0)


class FixedClock:
    """Deterministic clock; advance() moves it forward"""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def jam_data(**overrides):
    data = {
        "title": "Friday Blues",
        "venue_location": "Hall A",
        "based_on_song": "The Thrill Is Gone",
        "start_time": NOW + timedelta(days=1),
        "end_time": NOW + timedelta(days=1, hours=2),
        "required_roles": ["BASS", "LEAD GUITAR"],
    }
    data.update(overrides)
    return data


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def manager(clock):
    return JamManager(
        clock=clock,
        update_attempts=3,
        allow_dual_membership=True,
        users=UserManager(history_attempts=3),
    )


@pytest.fixture
def users(db):
    """host, alice (BASS + LEAD GUITAR), bob (BASS), carol (LEAD VOCALS + HORNS)"""
    seed = {
        "host": ["LEAD VOCALS"],
        "alice": ["BASS", "LEAD GUITAR"],
        "bob": ["BASS"],
        "carol": ["LEAD VOCALS", "HORNS"],
    }
    created = {}
    for username, roles in seed.items():
        created[username] = UserManager.register_user(
            db, {"username": username, "password": "pw", "band_roles": roles}
        )
    return created


@pytest.fixture
def jam(db, manager, users):
    """PENDING jam hosted by host, requiring BASS + LEAD GUITAR"""
    return manager.create_jam(db, jam_data(), users["host"].id)
