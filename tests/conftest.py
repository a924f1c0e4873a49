import os

os.environ["ENV"] = "test"

import pytest
from fastapi.testclient import TestClient
from gustomap.main import app
from gustomap.database import init_db, drop_all_tables
from gustomap.services.signed_urls import SignedUrlResolver
from gustomap.services.storage import get_image_storage, get_signed_url_resolver

client = TestClient(app)


class FakeImageStorage:
    """In-memory stand-in for the review images bucket."""

    def __init__(self):
        self.objects = {}
        self.removed = []
        self.sign_calls = []

    def upload(self, key, data, content_type):
        self.objects[key] = data
        return key

    def remove(self, keys):
        self.removed.extend(keys)
        for key in keys:
            self.objects.pop(key, None)

    async def create_signed_url(self, key, expires_in):
        self.sign_calls.append(key)
        if key not in self.objects:
            raise ValueError("Object not found")
        return f"https://storage.test/signed/{key}?token=t{len(self.sign_calls)}"


@pytest.fixture(scope="function", autouse=True)
def setup_test_db():
    init_db()  # Create all tables in in-memory SQLite
    yield
    drop_all_tables()


@pytest.fixture(autouse=True)
def image_storage():
    storage = FakeImageStorage()
    resolver = SignedUrlResolver(storage)
    app.dependency_overrides[get_image_storage] = lambda: storage
    app.dependency_overrides[get_signed_url_resolver] = lambda: resolver
    yield storage
    app.dependency_overrides.clear()


@pytest.fixture
def test_user_data():
    return {
        "username": "giulia",
        "password": "testpassword123",
        "full_name": "Giulia Rossi"
    }


@pytest.fixture
def network_codes():
    return {
        "success": [200, 201],
        "error": [400, 401, 404, 422]
    }


def login(user_data):
    response = client.post("/api/users/", json=user_data)
    assert response.status_code in [200, 201]

    login_data = {
        "username": user_data["username"],
        "password": user_data["password"]
    }
    response = client.post("/api/token", data=login_data)
    assert response.status_code == 200
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user_data):
    return login(test_user_data)


@pytest.fixture
def other_headers(test_user_data):
    other = dict(test_user_data, username="marco", full_name="Marco Bianchi")
    return login(other)


@pytest.fixture
def test_review_data():
    return {
        "name": "Trattoria del Borgo",
        "category": "restaurant",
        "cuisine": "italiana",
        "location": "Milano Centro",
        "city": "Milano",
        "province": "Milano",
        "region": "Lombardia",
        "latitude": 45.4642,
        "longitude": 9.19,
        "rating": 5,
        "description": "Pasta fatta in casa divina, servizio impeccabile.",
        "price_per_person": 35.0,
        "visit_status": "visited",
        "visit_date": "2024-05-10",
        "image_refs": ["1/1715000000000.jpg"]
    }
