import os

# Must be set before config is imported anywhere
os.environ.setdefault("USE_MOCK_SERVICES", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from services.firestore_service import FirestoreRepository
from services.mocks import MockFirestoreClient

COMPANY_A = "company-a"
COMPANY_B = "company-b"


@pytest.fixture()
def db() -> MockFirestoreClient:
    return MockFirestoreClient()


@pytest.fixture()
def repo(db: MockFirestoreClient) -> FirestoreRepository:
    return FirestoreRepository(db, collection_name="widgets")


@pytest.fixture()
def api() -> Generator:
    """The app module with a clean in-memory store"""
    import main

    main.db.reset()
    main._analytics_cache.clear()
    try:
        yield main
    finally:
        main.db.reset()
        main._analytics_cache.clear()


@pytest.fixture()
def client(api) -> Generator[TestClient, None, None]:
    with TestClient(api.app) as test_client:
        yield test_client


def _headers(api, email: str, company_id: str, role: str) -> dict:
    result = api.simple_auth.register(email, "password123", email.split("@")[0].title(), company_id, role=role)
    assert result["success"], result
    return {"Authorization": f"Bearer {result['tokens']['access_token']}"}


@pytest.fixture()
def admin_headers(api) -> dict:
    return _headers(api, "admin@a.example.com", COMPANY_A, "admin")


@pytest.fixture()
def agent_headers(api) -> dict:
    return _headers(api, "agent@a.example.com", COMPANY_A, "agent")


@pytest.fixture()
def other_company_headers(api) -> dict:
    return _headers(api, "agent@b.example.com", COMPANY_B, "agent")
