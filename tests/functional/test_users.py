import itertools
import pytest
from fastapi.testclient import TestClient
from gustomap.main import app

client = TestClient(app)


def test_read_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to GustoMap API"}


#  Fixture for creating a test user
@pytest.fixture
def created_user(test_user_data, network_codes):
    response = client.post("/api/users/", json=test_user_data)
    assert response.status_code in network_codes["success"]
    return response.json()


# CREATE USER TESTS
def test_create_user_success(test_user_data, network_codes):
    response = client.post("/api/users/", json=test_user_data)

    assert response.status_code in network_codes["success"]
    assert response.json()["username"] == test_user_data["username"]
    assert response.json()["full_name"] == test_user_data["full_name"]
    assert "password" not in response.json()
    assert "hashed_password" not in response.json()

def test_create_user_duplicate_username(created_user, test_user_data, network_codes):
    response = client.post("/api/users/", json=test_user_data)
    assert response.status_code in network_codes["error"]
    assert response.json()["detail"] == "Username already registered"

def test_create_user_short_password(test_user_data):
    response = client.post("/api/users/", json=dict(test_user_data, password="short"))
    assert response.status_code == 422


# LOGIN TESTS
def test_login_success(created_user, test_user_data):
    response = client.post("/api/token", data={
        "username": test_user_data["username"],
        "password": test_user_data["password"]
    })
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"

def test_login_wrong_password(created_user, test_user_data):
    response = client.post("/api/token", data={
        "username": test_user_data["username"],
        "password": "wrongpassword"
    })
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect username or password"

def test_login_unknown_user():
    response = client.post("/api/token", data={"username": "nobody", "password": "whatever123"})
    assert response.status_code == 401


# CURRENT USER TESTS
def test_read_me(auth_headers, test_user_data):
    response = client.get("/api/users/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["username"] == test_user_data["username"]

def test_read_me_invalid_token():
    response = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


# PROFILE TESTS
def upload_avatar(headers, name="me.png", data=b"\x89PNG avatar"):
    files = {"file": (name, data, "image/png")}
    return client.post("/api/users/me/avatar", files=files, headers=headers)

def test_new_user_has_empty_profile(auth_headers):
    me = client.get("/api/users/me", headers=auth_headers).json()
    assert me["first_name"] is None
    assert me["last_name"] is None
    assert me["avatar_key"] is None

def test_update_profile_names(auth_headers):
    response = client.put("/api/users/me", json={"first_name": " Giulia ", "last_name": "Rossi"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["first_name"] == "Giulia"
    assert response.json()["last_name"] == "Rossi"

    # Blank clears, unset fields stay
    response = client.put("/api/users/me", json={"first_name": "  "}, headers=auth_headers)
    assert response.json()["first_name"] is None
    assert response.json()["last_name"] == "Rossi"

def test_update_profile_unauthorized():
    response = client.put("/api/users/me", json={"first_name": "Giulia"})
    assert response.status_code == 401

def test_upload_avatar(auth_headers, image_storage):
    me = client.get("/api/users/me", headers=auth_headers).json()

    response = upload_avatar(auth_headers)
    assert response.status_code == 200
    key = response.json()["avatar_key"]
    assert key.startswith(f"{me['id']}/avatar-")
    assert key.endswith(".png")
    assert image_storage.objects[key] == b"\x89PNG avatar"

def test_replacing_avatar_removes_old_one(auth_headers, image_storage, monkeypatch):
    # Real keys are millisecond based and could collide within one test
    uploads = itertools.count(1)
    monkeypatch.setattr(
        "gustomap.routes.users.avatar_key",
        lambda user_id, filename: f"{user_id}/avatar-{next(uploads)}.png"
    )
    first = upload_avatar(auth_headers, name="one.png").json()["avatar_key"]
    second = upload_avatar(auth_headers, name="two.png").json()["avatar_key"]

    assert second != first
    assert image_storage.removed == [first]
    assert first not in image_storage.objects
    assert second in image_storage.objects

def test_remove_avatar(auth_headers, image_storage):
    key = upload_avatar(auth_headers).json()["avatar_key"]

    response = client.put("/api/users/me", json={"avatar_key": None}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["avatar_key"] is None
    assert image_storage.removed == [key]

def test_avatar_must_be_own_upload(auth_headers, other_headers, image_storage):
    other_key = upload_avatar(other_headers).json()["avatar_key"]

    response = client.put("/api/users/me", json={"avatar_key": other_key}, headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Not authorized to use this avatar"
    assert image_storage.removed == []

def test_avatar_rejects_non_images(auth_headers, image_storage):
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    response = client.post("/api/users/me/avatar", files=files, headers=auth_headers)
    assert response.status_code == 400
    assert image_storage.objects == {}

def test_avatar_size_limit(auth_headers, image_storage):
    response = upload_avatar(auth_headers, data=b"x" * (5 * 1024 * 1024 + 1))
    assert response.status_code == 413
    assert response.json()["detail"] == "Image is larger than 5 MB"
