from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from ..models import Review
from ..schemas.review import PublicReviewRead
from ..database import get_session
from ..services.signed_urls import SignedUrlResolver
from ..services.storage import get_signed_url_resolver

router = APIRouter()


@router.get("/reviews/{review_id}", response_model=PublicReviewRead)
async def get_public_review(
    review_id: str,
    db: Session = Depends(get_session),
    resolver: SignedUrlResolver = Depends(get_signed_url_resolver)
):
    """Share-link view of a review. No login needed, but the owner must have published it."""
    review = db.get(Review, review_id)
    if not review or not review.is_public:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found or not public"
        )

    return PublicReviewRead(
        id=review.id,
        name=review.name,
        category=review.category,
        rating=review.rating,
        location=review.location,
        description=review.description,
        image_urls=await resolver.resolve(review.image_refs),
        created_at=review.created_at,
    )
