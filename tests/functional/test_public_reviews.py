import pytest
from fastapi.testclient import TestClient
from gustomap.main import app

client = TestClient(app)

REMOTE_PHOTO = "https://places.googleapis.com/v1/places/abc/photos/xyz/media?maxWidthPx=800"


@pytest.fixture
def shared_review(test_review_data, auth_headers, image_storage):
    image_storage.upload("1/cover.jpg", b"jpeg", "image/jpeg")
    data = dict(test_review_data, image_refs=["1/cover.jpg", REMOTE_PHOTO, "1/missing.jpg"])
    response = client.post("/api/reviews/", json=data, headers=auth_headers)
    assert response.status_code == 201
    review = response.json()

    response = client.patch(f"/api/reviews/{review['id']}/public", json={"is_public": True}, headers=auth_headers)
    assert response.status_code == 200
    return response.json()


def test_public_review_visible_without_login(shared_review):
    response = client.get(f"/api/public/reviews/{shared_review['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == shared_review["name"]
    assert body["rating"] == shared_review["rating"]
    assert "user_id" not in body
    assert "latitude" not in body

def test_public_review_images_are_resolved(shared_review):
    response = client.get(f"/api/public/reviews/{shared_review['id']}")
    urls = response.json()["image_urls"]
    assert len(urls) == 3
    assert urls[0].startswith("https://storage.test/signed/1/cover.jpg")
    assert urls[1] == REMOTE_PHOTO
    # Unsignable keys come back unchanged
    assert urls[2] == "1/missing.jpg"

def test_public_review_signed_once_while_cached(shared_review, image_storage):
    client.get(f"/api/public/reviews/{shared_review['id']}")
    client.get(f"/api/public/reviews/{shared_review['id']}")
    assert image_storage.sign_calls.count("1/cover.jpg") == 1

def test_private_review_not_found(shared_review, auth_headers):
    client.patch(f"/api/reviews/{shared_review['id']}/public", json={"is_public": False}, headers=auth_headers)

    response = client.get(f"/api/public/reviews/{shared_review['id']}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Review not found or not public"

def test_unknown_review_not_found():
    response = client.get("/api/public/reviews/does-not-exist")
    assert response.status_code == 404
    assert response.json()["detail"] == "Review not found or not public"
