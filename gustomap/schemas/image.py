from pydantic import BaseModel
from typing import List, Optional

class ImageUploadRead(BaseModel):
    key: str

class SignedUrlRequest(BaseModel):
    refs: List[str]

class SignedUrlResponse(BaseModel):
    urls: List[str]
    # Unix time at which the store stops honouring each URL; None for
    # absolute URLs and keys that could not be signed
    expires_at: List[Optional[float]]
