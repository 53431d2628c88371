"""
    Direct uploads: a one-shot, expiring upload slot created by an
    authenticated caller and consumed by an unauthenticated POST.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import json
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.image_service.models import DirectUpload, ImageMeta, format_timestamp, parse_timestamp, utcnow
from app.image_service.service import save_image_and_meta
from app.settings import settings
from app.exceptions import (
    BadRequestException,
    ConflictException,
    DirectUploadNotFoundException,
    DynamoDBException,
)

log = logging.getLogger(__name__)

def upload_url(upload_id: str) -> str:
    return f"{settings.base_url.rstrip('/')}/upload/{upload_id}"

def parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """RFC 3339 expiry; a missing value means the default TTL."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise BadRequestException("invalid expiry format, use RFC3339")
    if parsed.tzinfo is None:
        raise BadRequestException("invalid expiry format, use RFC3339")
    return parsed

def create_direct_upload(
    db: DynamoDBService,
    account_id: str,
    expiry: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> DirectUpload:
    upload = DirectUpload(
        account_id=account_id,
        expiry=expiry or utcnow() + timedelta(seconds=settings.direct_upload_ttl_seconds),
        metadata=metadata or {},
    )
    try:
        db.put_direct_upload({
            "upload_id": upload.upload_id,
            "account_id": account_id,
            "expiry": format_timestamp(upload.expiry),
            "meta": json.dumps(upload.metadata),
            "completed": False,
        })
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_direct_upload failed: {e}")
        raise DynamoDBException(f"failed to create direct upload: {e}")
    log.info("Created direct upload %s for %s", upload.upload_id, account_id)
    return upload

def get_direct_upload(db: DynamoDBService, upload_id: str) -> DirectUpload:
    try:
        item = db.get_direct_upload(upload_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_direct_upload failed: {e}")
        raise DynamoDBException(f"failed to get direct upload: {e}")
    if not item:
        raise DirectUploadNotFoundException(upload_id)
    return DirectUpload(
        upload_id=item["upload_id"],
        account_id=item["account_id"],
        expiry=parse_timestamp(item["expiry"]),
        metadata=json.loads(item.get("meta") or "{}"),
        completed=bool(item.get("completed", False)),
    )

def open_direct_upload(db: DynamoDBService, upload_id: str) -> DirectUpload:
    """Returns the upload if it is still pending and unexpired."""
    upload = get_direct_upload(db, upload_id)
    if utcnow() > upload.expiry:
        raise BadRequestException("upload URL has expired")
    if upload.completed:
        raise ConflictException("upload already completed")
    return upload

def complete_direct_upload(
    db: DynamoDBService,
    s3: S3Service,
    upload: DirectUpload,
    fileobj,
    filename: str,
) -> ImageMeta:
    """pending -> completed; the upload id becomes the image id."""
    image = save_image_and_meta(
        db=db,
        s3=s3,
        fileobj=fileobj,
        account_id=upload.account_id,
        filename=filename,
        meta=upload.metadata,
        image_id=upload.upload_id,
        draft=True,
    )
    try:
        db.complete_direct_upload(upload.upload_id)
    except (BotoCoreError, ClientError) as e:
        # the image already exists; a stale pending flag is only logged
        log.warning(f"DynamoDB complete_direct_upload failed for {upload.upload_id}: {e}")
    return image
