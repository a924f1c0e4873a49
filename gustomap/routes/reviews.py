from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from pydantic import ValidationError
from typing import List
from ..models import Review, utcnow
from ..schemas.review import (
    MapMarker, ReviewCreate, ReviewRead, ReviewStats, ReviewUpdate, ReviewVisibility
)
from ..database import get_session
from ..services.auth import get_current_user
from ..services.collection import (
    CategoryFilter, VisitFilter, filter_reviews, map_markers, review_stats, sort_reviews
)
from ..services.signed_urls import storage_keys
from ..services.storage import ImageStorage, ImageStorageError, get_image_storage
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_reviews(db: Session, user_id: int) -> List[ReviewRead]:
    reviews = db.exec(select(Review).where(Review.user_id == user_id)).all()
    return sort_reviews(ReviewRead.model_validate(r) for r in reviews)


def _owned_review(db: Session, review_id: str, user_id: int, action: str) -> Review:
    review = db.get(Review, review_id)
    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found"
        )
    if review.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this review"
        )
    return review


@router.post("/", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
def create_review(
    review: ReviewCreate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    db_review = Review(user_id=current_user.id, **review.model_dump())
    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    logger.info(f"User {current_user.id} added review {db_review.id}")
    return db_review


@router.get("/", response_model=List[ReviewRead])
def get_reviews(
    category: CategoryFilter = CategoryFilter.ALL,
    visit: VisitFilter = VisitFilter.ALL,
    q: str = "",
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    return filter_reviews(_user_reviews(db, current_user.id), category, visit, q)


@router.get("/stats", response_model=ReviewStats)
def get_review_stats(
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    return review_stats(_user_reviews(db, current_user.id))


@router.get("/map", response_model=List[MapMarker])
def get_review_markers(
    category: CategoryFilter = CategoryFilter.ALL,
    visit: VisitFilter = VisitFilter.ALL,
    q: str = "",
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    visible = filter_reviews(_user_reviews(db, current_user.id), category, visit, q)
    return map_markers(visible)


@router.get("/{review_id}", response_model=ReviewRead)
def get_review(
    review_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    return _owned_review(db, review_id, current_user.id, "view")


@router.put("/{review_id}", response_model=ReviewRead)
def update_review(
    review_id: str,
    review_update: ReviewUpdate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    db_review = _owned_review(db, review_id, current_user.id, "update")

    patch = review_update.model_dump(exclude_unset=True)
    merged = {field: getattr(db_review, field) for field in ReviewCreate.model_fields}
    merged.update(patch)

    # An entry that never had photos may stay without them
    try:
        ReviewCreate.model_validate(merged, context={"allow_empty_images": not db_review.image_refs})
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors()[0]["msg"]
        )

    for field, value in patch.items():
        setattr(db_review, field, value)
    db_review.updated_at = utcnow()

    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    return db_review


@router.patch("/{review_id}/public", response_model=ReviewRead)
def set_review_visibility(
    review_id: str,
    visibility: ReviewVisibility,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session)
):
    db_review = _owned_review(db, review_id, current_user.id, "share")
    db_review.is_public = visibility.is_public
    db_review.updated_at = utcnow()
    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    return db_review


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage)
):
    review = _owned_review(db, review_id, current_user.id, "delete")
    keys = storage_keys(review.image_refs)

    db.delete(review)
    db.commit()

    try:
        storage.remove(keys)
    except ImageStorageError as e:
        logger.warning(f"Images of review {review_id} left in storage: {str(e)}")
    return None
