from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from uuid import uuid4

# Fixed-width UTC timestamp; lexicographic order equals chronological order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)

def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)

def sort_key_for(uploaded: str, image_id: str) -> str:
    """Composite (timestamp, id) key used for ordering and cursors."""
    return f"{uploaded}|{image_id}"

class ImageMeta(BaseModel):
    image_id: str = Field(default_factory=new_image_id)
    account_id: str
    filename: str = ""
    creator: str = Field(default_factory=new_image_id)
    meta: Dict[str, Any] = {}
    require_signed_urls: bool = False
    uploaded_at: datetime = Field(default_factory=utcnow)
    draft: bool = False

    @property
    def uploaded_key(self) -> str:
        return format_timestamp(self.uploaded_at)

    @property
    def sort_key(self) -> str:
        return sort_key_for(self.uploaded_key, self.image_id)

class ImageItem(BaseModel):
    id: str
    filename: str
    creator: str
    meta: Optional[Dict[str, Any]] = None
    requireSignedURLs: bool
    uploaded: datetime
    variants: List[str] = []
    draft: Optional[bool] = None

class UpdateImageRequest(BaseModel):
    metadata: Optional[Dict[str, Any]] = None
    requireSignedURLs: Optional[bool] = None

class ListImagesV2Response(BaseModel):
    images: List[Dict[str, Any]]
    continuation_token: str = ""

class DirectUpload(BaseModel):
    upload_id: str = Field(default_factory=new_image_id)
    account_id: str
    expiry: datetime
    metadata: Dict[str, Any] = {}
    completed: bool = False

def to_image_item(image: ImageMeta, variant_urls: List[str]) -> Dict[str, Any]:
    """API representation; empty meta and a false draft flag are omitted."""
    item = ImageItem(
        id=image.image_id,
        filename=image.filename,
        creator=image.creator,
        meta=image.meta or None,
        requireSignedURLs=image.require_signed_urls,
        uploaded=image.uploaded_at,
        variants=variant_urls,
        draft=True if image.draft else None,
    )
    return item.model_dump(mode="json", exclude_none=True)
