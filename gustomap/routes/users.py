from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlmodel import Session, select
from ..models import User, utcnow
from ..database import get_session
from ..schemas.user import UserCreate, UserProfileUpdate, UserRead
from ..services.auth import get_current_user, get_password_hash
from ..services.storage import ImageStorage, ImageStorageError, avatar_key, get_image_storage
from .images import read_image_upload, store_image
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_AVATAR_BYTES = 5 * 1024 * 1024


def _discard_avatar(storage: ImageStorage, key: str) -> None:
    # The profile no longer points at it, a leftover file is harmless
    try:
        storage.remove([key])
    except ImageStorageError as e:
        logger.warning(f"Could not remove old avatar {key}: {str(e)}")


def _save_profile(db: Session, user: User, storage: ImageStorage, old_avatar) -> User:
    user.updated_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    if old_avatar and old_avatar != user.avatar_key:
        _discard_avatar(storage, old_avatar)
    return user


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_session)):
    # Check if username already exists
    db_user = db.exec(select(User).where(User.username == user.username)).first()
    if db_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already registered"
        )

    # Create new user with hashed password
    db_user = User(
        username=user.username,
        full_name=user.full_name,
        hashed_password=get_password_hash(user.password)
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

@router.get("/me", response_model=UserRead)
def read_user_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.put("/me", response_model=UserRead)
def update_user_me(
    profile: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage)
):
    updates = profile.model_dump(exclude_unset=True)
    new_avatar = updates.get("avatar_key")
    if new_avatar is not None and not new_avatar.startswith(f"{current_user.id}/"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to use this avatar"
        )

    old_avatar = current_user.avatar_key
    for field, value in updates.items():
        setattr(current_user, field, value)
    return _save_profile(db, current_user, storage, old_avatar)

@router.post("/me/avatar", response_model=UserRead)
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage)
):
    data = await read_image_upload(file, MAX_AVATAR_BYTES)
    key = avatar_key(current_user.id, file.filename or "")
    store_image(storage, key, data, file.content_type)
    logger.info(f"Stored avatar {key} for user {current_user.id}")

    old_avatar = current_user.avatar_key
    current_user.avatar_key = key
    return _save_profile(db, current_user, storage, old_avatar)
