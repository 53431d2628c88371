from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

    app_title: str = Field("Image Delivery Service")

    aws_region: str = Field("us-east-1")
    aws_endpoint_url: Optional[str] = Field(None)
    aws_access_key_id: str = Field("test")
    aws_secret_access_key: str = Field("test")

    s3_bucket: str = Field("image-delivery-bucket")

    images_table: str = Field("Images")
    variants_table: str = Field("Variants")
    signing_keys_table: str = Field("SigningKeys")
    direct_uploads_table: str = Field("DirectUploads")
    query_batch_size: int = Field(100, ge=1)

    # Empty token accepts any well-formed credential
    auth_token: str = Field("")
    base_url: str = Field("http://localhost:8080")
    enforce_signed_urls: bool = Field(False)
    image_allowance: int = Field(100000)
    direct_upload_ttl_seconds: int = Field(1800)

    log_level: str = Field("INFO")

settings = Settings()
