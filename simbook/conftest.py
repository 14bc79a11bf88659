"""
Shared fixtures: a throwaway SQLite file per test, with the same
BEGIN IMMEDIATE engine configuration the service uses.
"""
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from simbook.booking.sql_store import SqlStore
from simbook.database import init_db, make_engine
from simbook.models import BusinessHours, Coach, CoachAvailability, Credit


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'simbook.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def store(session_factory):
    return SqlStore(session_factory)


@pytest.fixture
def studio(session_factory):
    """Mon–Fri 08:00–18:00, weekends closed, no coaches, no credits."""
    with session_factory() as db:
        for dow in range(7):
            db.add(BusinessHours(day_of_week=dow, open_hour=8, close_hour=18,
                                 is_closed=dow in (0, 6)))
        db.commit()
    return session_factory


def add_coach(session_factory, coach_id, blocks, registered_at=None, is_active=True):
    """blocks: [(day_of_week, start_hour, end_hour), ...]"""
    with session_factory() as db:
        db.add(Coach(id=coach_id, name=coach_id.title(), is_active=is_active,
                     registered_at=registered_at or datetime(2026, 1, 1)))
        db.flush()
        for dow, start, end in blocks:
            db.add(CoachAvailability(coach_id=coach_id, day_of_week=dow,
                                     start_hour=start, end_hour=end))
        db.commit()


def add_credits(session_factory, user_id, hours):
    with session_factory() as db:
        db.add(Credit(user_id=user_id, simulator_hours=hours))
        db.commit()
