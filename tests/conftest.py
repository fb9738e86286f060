import atexit
import os
import tempfile
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine

from app.core import database
from app.core.config import settings
from app.core.database import DBSession
from app.integrations.models import Integration
from app.main import app

# File-based SQLite to avoid in-memory connection issues
test_db_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
engine = create_engine(
    f'sqlite:///{test_db_file.name}',
    connect_args={'check_same_thread': False},
)
TestingSessionLocal = sessionmaker(class_=DBSession, autocommit=False, autoflush=False, bind=engine)

atexit.register(lambda: os.unlink(test_db_file.name))


@pytest.fixture(autouse=True)
def use_test_session_factory(monkeypatch):
    """Use test session factory for all tests"""
    monkeypatch.setattr(database, 'SessionCls', TestingSessionLocal)


@pytest.fixture(name='session')
def session_fixture() -> Generator[DBSession, None, None]:
    """Create a new database session for a test"""
    SQLModel.metadata.create_all(bind=engine)

    with TestingSessionLocal() as session:
        yield session

    SQLModel.metadata.drop_all(bind=engine)


@pytest.fixture(name='db')
def db_fixture(session: DBSession):
    return session


@pytest.fixture(name='client')
def client_fixture(session: DBSession):
    """Create a test client, authenticated with the API key"""

    def get_session_override():
        return session

    from app.core.database import get_db

    app.dependency_overrides[get_db] = get_session_override
    client = TestClient(app, headers={'Authorization': f'Bearer {settings.api_key}'})
    yield client
    app.dependency_overrides.clear()


from tests.factories import IntegrationFactory  # noqa: E402


@pytest.fixture
def ac_integration(db: DBSession):
    """An ActiveCampaign integration with its pipeline, stage and owner already resolved"""
    return IntegrationFactory.create_with_db(db)


@pytest.fixture
def ss_integration(db: DBSession):
    return IntegrationFactory.create_with_db(
        db,
        name='SharpSpring',
        kind=Integration.KIND_SHARPSPRING,
        settings={'account_id': 'ACC123', 'secret_key': 'shh'},
    )
