from typing import Optional
from pydantic import BaseModel, Field

class VariantOptions(BaseModel):
    fit: str = "scale-down"
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)
    metadata: str = "none"

class Variant(BaseModel):
    id: str
    options: VariantOptions = VariantOptions()
    neverRequireSignedURLs: bool = False

class CreateVariantRequest(BaseModel):
    id: str = ""
    options: VariantOptions = VariantOptions()
    neverRequireSignedURLs: bool = False

class UpdateVariantOptions(BaseModel):
    fit: str = ""
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)
    metadata: str = ""

class UpdateVariantRequest(BaseModel):
    options: Optional[UpdateVariantOptions] = None
    neverRequireSignedURLs: Optional[bool] = None
