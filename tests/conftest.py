import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DB_PATH = Path("/tmp/webnav-test.db")
TEST_SHEET_DIR = Path("/tmp/webnav-sheets-test")
os.environ["WEBNAV_DB_PATH"] = str(TEST_DB_PATH)
os.environ["WEBNAV_SHEET_DIR"] = str(TEST_SHEET_DIR)
os.environ["WEBNAV_REQUEST_TIMEOUT"] = "5"


@pytest.fixture(autouse=True)
def clean_db():
    from webnav.config import clear_settings_cache

    clear_settings_cache()
    for suffix in ("", "-wal", "-shm"):
        path = Path(str(TEST_DB_PATH) + suffix)
        if path.exists():
            path.unlink()
    yield


@pytest.fixture
def engine():
    from webnav.services.storage import property_engine

    engine = property_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def client():
    from webnav.main import app
    from webnav.services.registry import navigator_registry

    navigator_registry.clear()
    with TestClient(app) as test_client:
        yield test_client
    navigator_registry.clear()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session
