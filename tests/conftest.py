# tests/conftest.py
import os
import sys

import pytest
from fastapi.testclient import TestClient

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from washconnect.config import Settings  # noqa: E402
from washconnect.core.security import Requester, create_access_token  # noqa: E402
from washconnect.database import FileBackedStorage, MemoryStorage  # noqa: E402
from washconnect.main import create_app  # noqa: E402
from washconnect.services.orders import OrderService  # noqa: E402


ALICE = Requester(user_id=1, user_type="client")
BOB = Requester(user_id=2, user_type="client")
SUDS = Requester(user_id=10, user_type="provider", provider_id=3)
FRESH = Requester(user_id=11, user_type="provider", provider_id=4)


@pytest.fixture(params=["memory", "file"])
def storage(request, tmp_path):
    """Every test using this fixture runs once per storage backend."""
    if request.param == "file":
        return FileBackedStorage(tmp_path / "data")
    return MemoryStorage()


@pytest.fixture
def service(storage):
    return OrderService(storage, Settings())


@pytest.fixture
def app():
    """An isolated app with its own in-memory storage."""
    return create_app(Settings(STORAGE_BACKEND="memory"))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_header():
    """
    Build an Authorization header for a requester.
    Usage: hdr = auth_header(ALICE)
    """
    def _h(requester: Requester):
        return {"Authorization": f"Bearer {create_access_token(requester)}"}
    return _h


@pytest.fixture
def place_order(client, auth_header):
    """
    Create an order through the API and return the order JSON.
    Usage: order = place_order(ALICE, provider_id=3)
    """
    def _fn(requester=ALICE, **fields):
        payload = {"quantity": 6.5, "provider_id": SUDS.provider_id}
        payload.update(fields)
        resp = client.post("/api/orders", json=payload, headers=auth_header(requester))
        assert resp.status_code == 201, resp.text
        return resp.json()["order"]
    return _fn
