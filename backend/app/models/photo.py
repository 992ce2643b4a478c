"""
Photo Model
Business photos stored in S3
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models.common import BaseDocument, generate_id


class PhotoType(str, Enum):
    """Where a photo is shown; a business has at most one HERO"""
    HERO = "hero"
    GALLERY = "gallery"
    LOGO = "logo"
    BANNER = "banner"


PHOTO_TYPE_ORDER = {
    PhotoType.HERO.value: 0,
    PhotoType.GALLERY.value: 1,
    PhotoType.LOGO.value: 2,
    PhotoType.BANNER.value: 3,
}


class Photo(BaseDocument):
    """Business photo document"""
    photo_id: str = Field(default_factory=lambda: generate_id("pho"))
    business_id: str
    url: str
    type: PhotoType = PhotoType.GALLERY
    caption: Optional[str] = None
    order: int = 0
    is_active: bool = True


class PresignedUrlRequest(BaseModel):
    """Request an upload URL"""
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str
    type: PhotoType = PhotoType.GALLERY


class UploadCompleteRequest(BaseModel):
    """Register an uploaded photo"""
    url: str = Field(min_length=1)
    type: PhotoType = PhotoType.GALLERY
    caption: Optional[str] = Field(None, max_length=300)
    order: int = 0


class PhotoUpdate(BaseModel):
    """Photo edits"""
    type: Optional[PhotoType] = None
    caption: Optional[str] = Field(None, max_length=300)
    order: Optional[int] = None


class PhotoResponse(BaseModel):
    """Photo response"""
    photo_id: str
    business_id: str
    url: str
    type: PhotoType
    caption: Optional[str] = None
    order: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
