from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from ..schemas.image import ImageUploadRead, SignedUrlRequest, SignedUrlResponse
from ..services.auth import get_current_user
from ..services.signed_urls import SignedUrlResolver
from ..services.storage import (
    ImageStorage, ImageStorageError, get_image_storage, get_signed_url_resolver, image_key
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGE_BYTES = 10 * 1024 * 1024


async def read_image_upload(file: UploadFile, max_bytes: int = MAX_IMAGE_BYTES) -> bytes:
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image uploads are accepted"
        )
    data = await file.read()
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image is larger than {max_bytes // (1024 * 1024)} MB"
        )
    return data


def store_image(storage: ImageStorage, key: str, data: bytes, content_type: str) -> None:
    try:
        storage.upload(key, data, content_type)
    except ImageStorageError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )


@router.post("/", response_model=ImageUploadRead, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    current_user = Depends(get_current_user),
    storage: ImageStorage = Depends(get_image_storage)
):
    data = await read_image_upload(file)
    key = image_key(current_user.id, file.filename or "")
    store_image(storage, key, data, file.content_type)
    logger.info(f"Stored image {key}")
    return ImageUploadRead(key=key)


@router.post("/signed-urls", response_model=SignedUrlResponse)
async def sign_images(
    request: SignedUrlRequest,
    current_user = Depends(get_current_user),
    resolver: SignedUrlResolver = Depends(get_signed_url_resolver)
):
    signed = await resolver.resolve_signed(request.refs)
    return SignedUrlResponse(
        urls=[s.url for s in signed],
        expires_at=[s.expires_at for s in signed]
    )
