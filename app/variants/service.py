from typing import Any, Dict, List
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.variants.models import CreateVariantRequest, UpdateVariantRequest, Variant, VariantOptions
from app.image_processing.transform import FitMode
from app.exceptions import BadRequestException, ConflictException, DynamoDBException, VariantNotFoundException

log = logging.getLogger(__name__)

MAX_VARIANTS_PER_ACCOUNT = 100
INVALID_FIT_MESSAGE = "invalid fit mode: must be one of scale-down, contain, cover, crop, pad"

def variant_to_item(account_id: str, variant: Variant) -> Dict[str, Any]:
    return {
        "account_id": account_id,
        "variant_id": variant.id,
        "fit": variant.options.fit,
        "width": variant.options.width,
        "height": variant.options.height,
        "metadata": variant.options.metadata,
        "never_require_signed_urls": variant.neverRequireSignedURLs,
    }

def item_to_variant(item: Dict[str, Any]) -> Variant:
    # DynamoDB numbers come back as Decimal
    return Variant(
        id=item["variant_id"],
        options=VariantOptions(
            fit=item.get("fit", FitMode.SCALE_DOWN.value),
            width=int(item.get("width", 0)),
            height=int(item.get("height", 0)),
            metadata=item.get("metadata", "none"),
        ),
        neverRequireSignedURLs=bool(item.get("never_require_signed_urls", False)),
    )

def create_variant(db: DynamoDBService, account_id: str, req: CreateVariantRequest) -> Variant:
    if not req.id:
        raise BadRequestException("variant id is required")
    if not FitMode.is_valid(req.options.fit):
        raise BadRequestException(INVALID_FIT_MESSAGE)

    variant = Variant(id=req.id, options=req.options, neverRequireSignedURLs=req.neverRequireSignedURLs)
    try:
        if db.count_variants(account_id) >= MAX_VARIANTS_PER_ACCOUNT:
            raise BadRequestException("maximum number of variants reached")
        db.put_variant(variant_to_item(account_id, variant), overwrite=False)
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            raise ConflictException("variant already exists")
        log.error(f"DynamoDB put_variant failed: {e}")
        raise DynamoDBException(f"failed to create variant: {e}")
    except BotoCoreError as e:
        log.error(f"DynamoDB put_variant failed: {e}")
        raise DynamoDBException(f"failed to create variant: {e}")

    log.info("Created variant %s/%s (fit=%s)", account_id, variant.id, variant.options.fit)
    return variant

def get_variant(db: DynamoDBService, account_id: str, variant_id: str) -> Variant:
    try:
        item = db.get_variant(account_id, variant_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_variant failed: {e}")
        raise DynamoDBException(f"failed to get variant: {e}")
    if not item:
        raise VariantNotFoundException(variant_id)
    return item_to_variant(item)

def list_variants(db: DynamoDBService, account_id: str) -> List[Variant]:
    try:
        items = db.list_variants(account_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB list_variants failed: {e}")
        raise DynamoDBException(f"failed to list variants: {e}")
    return sorted((item_to_variant(item) for item in items), key=lambda v: v.id)

def update_variant(db: DynamoDBService, account_id: str, variant_id: str, req: UpdateVariantRequest) -> Variant:
    """Partial update: only non-empty option fields override the stored ones."""
    variant = get_variant(db, account_id, variant_id)

    if req.options is not None:
        opts = req.options
        if opts.fit and not FitMode.is_valid(opts.fit):
            raise BadRequestException(INVALID_FIT_MESSAGE)
        if opts.fit:
            variant.options.fit = opts.fit
        if opts.width:
            variant.options.width = opts.width
        if opts.height:
            variant.options.height = opts.height
        if opts.metadata:
            variant.options.metadata = opts.metadata

    if req.neverRequireSignedURLs is not None:
        variant.neverRequireSignedURLs = req.neverRequireSignedURLs

    try:
        db.put_variant(variant_to_item(account_id, variant))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_variant failed: {e}")
        raise DynamoDBException(f"failed to update variant: {e}")
    return variant

def delete_variant(db: DynamoDBService, account_id: str, variant_id: str):
    try:
        deleted = db.delete_variant(account_id, variant_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_variant failed: {e}")
        raise DynamoDBException(f"failed to delete variant: {e}")
    if not deleted:
        raise VariantNotFoundException(variant_id)
