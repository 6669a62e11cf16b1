"""Pytest configuration and fixtures."""

import os

import mongomock
import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DATABASE_NAME", "studymate_test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("DATABASE_URL", None)


@pytest.fixture
def store():
    """In-memory MongoDB installed as the process-wide client."""
    import database
    from config import reset_settings

    reset_settings()
    client = mongomock.MongoClient()
    database.use_client(client)
    database.ensure_indexes()

    yield database.get_db()

    database.close()
    reset_settings()


@pytest.fixture
def catalog(store):
    from partners import PartnerCatalog

    return PartnerCatalog()


@pytest.fixture
def ledger(store):
    from connections import ConnectionLedger

    return ConnectionLedger()


@pytest.fixture
def orchestrator(catalog, ledger):
    from matchmaking import RequestOrchestrator

    return RequestOrchestrator(catalog, ledger)


@pytest.fixture
def make_partner(catalog):
    """Create a partner and return its id."""

    def _make(**overrides):
        profile = {
            "name": "Ada",
            "subject": "Mathematics",
            "email": "ada@example.com",
            "experienceLevel": "Expert",
            "studyMode": "Online",
            "profileImage": "https://img.example.com/ada.png",
        }
        profile.update(overrides)
        return catalog.create(profile)

    return _make


@pytest.fixture
def api_client(store):
    """FastAPI test client."""
    from fastapi.testclient import TestClient
    from main import app

    # Not used as a context manager: the lifespan would replace the mongomock client
    return TestClient(app, raise_server_exceptions=False)
