"""Shared fixtures: an in-memory database recreated for every test."""

import os

# Must be set before spotmap.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("LOGFIRE_TOKEN", None)

import datetime as dt

import pytest

from spotmap.config import EngineConfig
from spotmap.database import Base, SessionLocal, engine, init_db
from spotmap.schemas import SpotDraft
from spotmap.spots import SpotStore

DHAKA = (23.8103, 90.4125)


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def config(tmp_path):
    return EngineConfig(vote_retry_delay_s=0, profile_dir=str(tmp_path / "profiles"))


@pytest.fixture
def today():
    return dt.date(2026, 3, 15)


@pytest.fixture
def store(db, config):
    return SpotStore(db, config)


@pytest.fixture
def make_spot(store, today):
    """Create a spot with sensible defaults; keyword arguments override fields."""

    def _make(**overrides):
        fields = {
            "name": "Biryani at Baitul Mukarram",
            "area": "Paltan",
            "category": "biryani",
            "lat": DHAKA[0],
            "lng": DHAKA[1],
            "date": today,
        }
        fields.update(overrides)
        return store.create(SpotDraft(**fields), today=today)

    return _make
