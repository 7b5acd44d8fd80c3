import pytest
from datetime import datetime, timedelta

from timeattack.services.database import DatabaseManager
from timeattack.services.engine import SessionEngine

class FakeClock:
    """Wall clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now

@pytest.fixture
def start_time():
    return datetime(2024, 1, 3, 9, 0, 0)

@pytest.fixture
def clock(start_time):
    """Provide a controllable clock"""
    return FakeClock(start_time)

@pytest.fixture
def db(tmp_path):
    """Provide a test database instance backed by a temp file"""
    db = DatabaseManager(tmp_path / "timeattack.db")
    yield db
    db.close()

@pytest.fixture
def engine(db, clock):
    """Provide an engine over the test database"""
    return SessionEngine(db, clock=clock)
