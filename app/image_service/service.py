from typing import Any, Dict, List, Optional, Tuple
import json
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.image_service.models import (
    ImageMeta,
    format_timestamp,
    parse_timestamp,
    to_image_item,
)
from app.image_service.pagination import Cursor, MetadataFilter, SortOrder, paginate
from app.image_processing.formats import content_type_for, detect_format
from app.settings import settings
from app.exceptions import StorageException, DynamoDBException, ImageNotFoundException

log = logging.getLogger(__name__)

def image_to_item(image: ImageMeta) -> Dict[str, Any]:
    """Serializes an image record for DynamoDB."""
    return {
        "account_id": image.account_id,
        "image_id": image.image_id,
        "filename": image.filename,
        "creator": image.creator,
        # arbitrary JSON; kept as a string so floats need no Decimal conversion
        "meta": json.dumps(image.meta),
        "require_signed_urls": image.require_signed_urls,
        "uploaded_at": image.uploaded_key,
        "sort_key": image.sort_key,
        "draft": image.draft,
    }

def item_to_image(item: Dict[str, Any]) -> ImageMeta:
    return ImageMeta(
        image_id=item["image_id"],
        account_id=item["account_id"],
        filename=item.get("filename", ""),
        creator=item.get("creator", ""),
        meta=json.loads(item.get("meta") or "{}"),
        require_signed_urls=bool(item.get("require_signed_urls", False)),
        uploaded_at=parse_timestamp(item["uploaded_at"]),
        draft=bool(item.get("draft", False)),
    )

def cursor_for(image: ImageMeta) -> Cursor:
    return Cursor(uploaded=format_timestamp(image.uploaded_at), image_id=image.image_id)

def save_image_and_meta(
    db: DynamoDBService,
    s3: S3Service,
    fileobj,
    account_id: str,
    filename: str,
    meta: Optional[Dict[str, Any]] = None,
    require_signed_urls: bool = False,
    image_id: Optional[str] = None,
    draft: bool = False,
) -> ImageMeta:
    """Saves the original to S3 and the image record to DynamoDB."""
    image = ImageMeta(
        account_id=account_id,
        filename=filename,
        meta=meta or {},
        require_signed_urls=require_signed_urls,
        draft=draft,
    )
    if image_id:
        image.image_id = image_id

    head = fileobj.read(512)
    fileobj.seek(0)
    content_type = content_type_for(detect_format(head))

    # upload to s3
    try:
        s3.upload(fileobj=fileobj, account_id=account_id, image_id=image.image_id, content_type=content_type)
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 upload failed: {e}")
        raise StorageException(f"failed to store image: {e}")

    # persist record in dynamodb
    try:
        db.put_image(image_to_item(image))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_image failed: {e}")
        raise DynamoDBException(f"failed to create image record: {e}")

    log.info("Saved image %s/%s", account_id, image.image_id)
    return image

def get_image_meta(db: DynamoDBService, account_id: str, image_id: str) -> ImageMeta:
    """Gets an image record from DynamoDB."""
    try:
        item = db.get_image(account_id, image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_image failed: {e}")
        raise DynamoDBException(f"Failed to get image metadata: {e}")
    if not item:
        raise ImageNotFoundException(image_id)
    return item_to_image(item)

def update_image(
    db: DynamoDBService,
    account_id: str,
    image_id: str,
    meta: Optional[Dict[str, Any]] = None,
    require_signed_urls: Optional[bool] = None,
) -> ImageMeta:
    """Replaces metadata and/or the signed-URL flag of an existing image."""
    image = get_image_meta(db, account_id, image_id)
    if meta is not None:
        image.meta = meta
    if require_signed_urls is not None:
        image.require_signed_urls = require_signed_urls
    try:
        db.put_image(image_to_item(image))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_image failed: {e}")
        raise DynamoDBException(f"failed to update image: {e}")
    return image

def remove_image(
    db: DynamoDBService,
    s3: S3Service,
    account_id: str,
    image_id: str
) -> bool:
    """Removes the record from DynamoDB, then the original from S3."""
    try:
        deleted = db.delete_image(account_id, image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_image failed: {e}")
        raise DynamoDBException(f"Failed to delete image metadata: {e}")
    if not deleted:
        raise ImageNotFoundException(image_id)

    try:
        s3.delete(account_id, image_id)
    except (BotoCoreError, ClientError) as e:
        # the record is already gone; an orphaned blob is only logged
        log.warning(f"S3 delete failed for {account_id}/{image_id}: {e}")
    return True

def fetch_images(
    db: DynamoDBService,
    account_id: str,
    page: int = 1,
    per_page: int = 1000,
) -> Tuple[List[ImageMeta], int]:
    """Offset listing ordered by upload time; returns the page and the total count."""
    offset = (page - 1) * per_page
    try:
        total = db.count_images(account_id)
        images = []
        for position, item in enumerate(db.iter_images(account_id)):
            if position < offset:
                continue
            if len(images) == per_page:
                break
            images.append(item_to_image(item))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB fetch_images failed: {e}")
        raise DynamoDBException(f"failed to list images: {e}")
    return images, total

def fetch_images_page(
    db: DynamoDBService,
    account_id: str,
    cursor: str = "",
    page_size: int = 20,
    sort_order: SortOrder = SortOrder.ASC,
    metadata_filter: Optional[MetadataFilter] = None,
) -> Tuple[List[ImageMeta], str]:
    """
        Keyset listing: the page of images after `cursor` in `sort_order`,
        optionally restricted to images whose metadata satisfies the filter.
    """
    after = Cursor.decode(cursor).sort_key if cursor else None
    predicate = None
    if metadata_filter is not None:
        predicate = lambda image: metadata_filter.matches(image.meta)

    try:
        rows = (
            item_to_image(item)
            for item in db.iter_images(
                account_id,
                after_sort_key=after,
                descending=sort_order is SortOrder.DESC,
            )
        )
        return paginate(rows, page_size, cursor_for, predicate)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB fetch_images_page failed: {e}")
        raise DynamoDBException(f"failed to list images: {e}")

def count_images(db: DynamoDBService, account_id: str) -> int:
    try:
        return db.count_images(account_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB count_images failed: {e}")
        raise DynamoDBException(f"failed to count images: {e}")

def _variant_names(db: DynamoDBService, account_id: str) -> List[str]:
    try:
        variants = db.list_variants(account_id)
    except (BotoCoreError, ClientError) as e:
        log.warning(f"DynamoDB list_variants failed: {e}")
        return []
    return sorted(v["variant_id"] for v in variants)

def render_images(db: DynamoDBService, account_id: str, images: List[ImageMeta]) -> List[Dict[str, Any]]:
    """API form of each image, with a delivery URL for every variant on the account."""
    base = settings.base_url.rstrip("/")
    names = _variant_names(db, account_id)
    return [
        to_image_item(image, [f"{base}/cdn/{account_id}/{image.image_id}/{name}" for name in names])
        for image in images
    ]

def render_image(db: DynamoDBService, image: ImageMeta) -> Dict[str, Any]:
    return render_images(db, image.account_id, [image])[0]
