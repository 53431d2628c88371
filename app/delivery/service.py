"""
    Image delivery: look up image and variant, gate on signed URLs when
    required, fetch the original and run it through the transform pipeline.
"""
from typing import Mapping, Tuple
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import BlobNotFoundError, S3Service
from app.image_service.service import get_image_meta
from app.variants.service import get_variant
from app.signing.service import list_signing_keys
from app.signing.verifier import requires_signature, verify_signature
from app.image_processing.formats import content_type_for
from app.image_processing.pipeline import transform
from app.settings import settings
from app.exceptions import (
    DeliveryException,
    DynamoDBException,
    ImageNotFoundException,
    ImageProcessingException,
    VariantNotFoundException,
)

log = logging.getLogger(__name__)

def deliver_image(
    db: DynamoDBService,
    s3: S3Service,
    account_id: str,
    image_id: str,
    variant_name: str,
    query: Mapping[str, str],
) -> Tuple[bytes, str]:
    """Returns the transformed bytes and their content type."""
    try:
        image = get_image_meta(db, account_id, image_id)
        variant = get_variant(db, account_id, variant_name)
        if requires_signature(settings.enforce_signed_urls, image.require_signed_urls, variant.neverRequireSignedURLs):
            secrets = [key.value for key in list_signing_keys(db, account_id)]
            if not verify_signature(query, account_id, image_id, variant_name, secrets):
                log.info("Signed URL rejected for %s/%s/%s", account_id, image_id, variant_name)
                raise DeliveryException(403, "forbidden")
    except ImageNotFoundException:
        raise DeliveryException(404, "image not found")
    except VariantNotFoundException:
        raise DeliveryException(404, "variant not found")
    except DynamoDBException:
        raise DeliveryException(500, "internal server error")

    try:
        original = s3.retrieve(account_id, image_id)
    except BlobNotFoundError:
        raise DeliveryException(404, "image not found")
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 retrieve failed for {account_id}/{image_id}: {e}")
        raise DeliveryException(500, "internal server error")

    try:
        data, image_format = transform(
            original,
            variant.options.width,
            variant.options.height,
            variant.options.fit,
        )
    except ImageProcessingException as e:
        log.error(f"Transform failed for {account_id}/{image_id}/{variant_name}: {e.detail}")
        raise DeliveryException(500, "internal server error")

    return data, content_type_for(image_format)
