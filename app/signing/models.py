from datetime import datetime
from pydantic import BaseModel, Field

from app.image_service.models import utcnow

class SigningKey(BaseModel):
    name: str
    value: str
    created_at: datetime = Field(default_factory=utcnow, exclude=True)
