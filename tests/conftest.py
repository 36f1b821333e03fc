# tests/conftest.py
import os
import tempfile

import pytest

# Use DATABASE_URL when given (e.g. a throwaway Postgres); otherwise a temp SQLite file.
# Must happen before app/models are imported.
_TMP_DIR = tempfile.mkdtemp(prefix="settlement-tests-")
os.environ.setdefault(
    "DATABASE_URL", "sqlite:///" + os.path.join(_TMP_DIR, "test.sqlite3"))
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "1")
os.environ.setdefault("METRICS_ENABLED", "1")

from sqlalchemy import delete  # noqa: E402
from app import create_app  # noqa: E402
from models.base import Base, init_engine_and_session  # noqa: E402


TEST_CONFIG = {
    "TESTING": True,
    "WTF_CSRF_ENABLED": False,
    "PLATFORM_FEE_RATE": "0.05",
    "PAYOUT_DELAY_DAYS": 7,
    "SETTLEMENT_LOOKUP_ATTEMPTS": 10,
    "SETTLEMENT_LOOKUP_DELAY_SEC": 0.05,
}


@pytest.fixture(scope="session")
def app():
    return create_app(dict(TEST_CONFIG))


@pytest.fixture(scope="session")
def db_engine(app):
    engine, _Session = init_engine_and_session()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(autouse=True)
def _db_clean(db_engine):
    # children first so FKs never block the wipe
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(delete(table))
    yield


@pytest.fixture()
def client(app):
    return app.test_client()
