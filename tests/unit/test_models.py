import pytest
from datetime import date, datetime, timedelta
from pydantic import ValidationError
from sqlmodel import Session, select
from gustomap.models import User, Review, PlaceCategory, VisitStatus
from gustomap.database import engine
from gustomap.schemas.review import ReviewCreate


@pytest.fixture(name="session")
def session_fixture():
    with Session(engine) as session:
        yield session


def review_data(**overrides):
    data = {
        "name": "Osteria Francescana",
        "category": "restaurant",
        "location": "Modena",
        "rating": 5,
        "visit_status": "visited",
        "image_refs": ["1/cover.jpg"],
    }
    data.update(overrides)
    return data


# Enum Tests
def test_enum_values():
    assert PlaceCategory.CAFE == "cafe"
    assert VisitStatus.WISHLIST == "wishlist"
    with pytest.raises(ValueError):
        PlaceCategory("pub")


# ReviewCreate Validation Tests
def test_review_create_defaults():
    review = ReviewCreate(**review_data())
    assert review.is_public is False
    assert review.description == ""
    assert review.visit_date is None
    assert review.category == PlaceCategory.RESTAURANT

def test_visited_review_needs_rating():
    with pytest.raises(ValidationError, match="rating between 1 and 5"):
        ReviewCreate(**review_data(rating=0))

def test_wishlist_review_may_be_unrated_and_imageless():
    review = ReviewCreate(**review_data(visit_status="wishlist", rating=0, image_refs=[]))
    assert review.rating == 0

def test_visited_review_needs_photo():
    with pytest.raises(ValidationError, match="at least one photo"):
        ReviewCreate(**review_data(image_refs=[]))

def test_imageless_edit_allowed_with_context():
    review = ReviewCreate.model_validate(review_data(image_refs=[]), context={"allow_empty_images": True})
    assert review.image_refs == []

def test_coordinates_come_in_pairs():
    with pytest.raises(ValidationError):
        ReviewCreate(**review_data(latitude=44.6))
    review = ReviewCreate(**review_data(latitude=44.6, longitude=10.9))
    assert review.longitude == 10.9

@pytest.mark.parametrize("overrides", [
    {"name": ""},
    {"name": "  "},
    {"name": "x" * 101},
    {"location": "y" * 101},
    {"description": "z" * 501},
    {"rating": 6},
    {"rating": -1},
    {"price_per_person": -5},
    {"image_refs": ["k"] * 6},
])
def test_review_create_limits(overrides):
    with pytest.raises(ValidationError):
        ReviewCreate(**review_data(**overrides))

def test_review_create_accepts_limits():
    review = ReviewCreate(**review_data(name="n" * 100, location="l" * 100, description="d" * 500))
    assert len(review.description) == 500


# Table Tests
def test_review_persistence(session):
    user = User(username="giulia", hashed_password="hashed", full_name="Giulia Rossi")
    session.add(user)
    session.commit()

    review = Review(
        user_id=user.id,
        name="Caffè Florian",
        category=PlaceCategory.CAFE,
        location="Venezia",
        rating=4,
        visit_date=date(2024, 4, 2),
        image_refs=["1/a.jpg", "https://example.com/b.jpg"]
    )
    session.add(review)
    session.commit()
    session.refresh(review)

    assert len(review.id) == 32
    assert review.image_refs == ["1/a.jpg", "https://example.com/b.jpg"]
    assert review.visit_status == VisitStatus.VISITED
    assert review.is_public is False
    assert isinstance(review.created_at, datetime)
    assert user.reviews[0].name == "Caffè Florian"

def test_user_delete_cascades_to_reviews(session):
    user = User(username="marco", hashed_password="hashed", full_name="Marco Bianchi")
    session.add(user)
    session.commit()
    session.add(Review(user_id=user.id, name="Bar Basso", category=PlaceCategory.BAR,
                       location="Milano", visit_status=VisitStatus.WISHLIST))
    session.commit()
    session.refresh(user)

    session.delete(user)
    session.commit()
    assert session.exec(select(Review)).all() == []

def test_timestamps_are_timezone_aware(session):
    user = User(username="anna", hashed_password="x", full_name="Anna Verdi")
    assert user.created_at.tzinfo is not None
    session.add(user)
    session.commit()
    session.refresh(user)

    review = Review(user_id=user.id, name="Caffè Florian", category=PlaceCategory.CAFE,
                    location="Venezia", rating=4, image_refs=["1/a.jpg"])
    assert review.created_at.utcoffset() == timedelta(0)
    assert review.updated_at.tzinfo is not None
    session.add(review)
    session.commit()
