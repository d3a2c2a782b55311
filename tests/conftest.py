import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from brokerhub.database import Base  # noqa: E402
from brokerhub.models.appointment import Appointment  # noqa: E402
from brokerhub.models.availability import BrokerAvailability  # noqa: E402
from brokerhub.models.user import User  # noqa: E402

TABLES = [User.__table__, BrokerAvailability.__table__, Appointment.__table__]


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def booking_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
