from fastapi import APIRouter, Depends, Query, Request
from typing import Optional
import json
import logging

from app.storage.dynamodb import DynamoDBService
from app.dependencies.dependencies import get_dynamodb_service, require_auth
from app.image_service.service import fetch_images_page, render_images
from app.image_service.pagination import SortOrder, first_filter, parse_metadata_filters, parse_page_size
from app.image_service.direct_upload import create_direct_upload, parse_expiry, upload_url
from app.image_service.models import ListImagesV2Response
from app.envelope import envelope_with_info, success_response
from app.exceptions import BadRequestException

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/accounts/{account_id}/images/v2",
    tags=["images-v2"],
    dependencies=[Depends(require_auth)],
)

@router.get("")
def list_images_v2(
    request: Request,
    account_id: str,
    per_page: Optional[str] = Query(None),
    sort_order: Optional[str] = Query(None),
    continuation_token: Optional[str] = Query(None),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Cursor-paginated listing with an optional metadata[key][op]=value filter."""
    filters = parse_metadata_filters(request.query_params.multi_items())
    images, next_token = fetch_images_page(
        db,
        account_id,
        cursor=continuation_token or "",
        page_size=parse_page_size(per_page),
        sort_order=SortOrder.parse(sort_order),
        metadata_filter=first_filter(filters),
    )
    result = ListImagesV2Response(images=render_images(db, account_id, images), continuation_token=next_token)
    return success_response(result.model_dump())

@router.post("/direct_upload")
async def create_direct_upload_handler(
    request: Request,
    account_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Creates a one-time upload URL; accepts a JSON or form body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        raw = await request.body()
        try:
            body = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise BadRequestException(f"invalid JSON body: {e}")
        if not isinstance(body, dict):
            raise BadRequestException("invalid JSON body: expected an object")
        expiry = body.get("expiry")
        metadata = body.get("metadata")
    else:
        form = await request.form()
        expiry = form.get("expiry")
        metadata = form.get("metadata")
        if metadata:
            try:
                metadata = json.loads(metadata)
            except json.JSONDecodeError as e:
                raise BadRequestException(f"invalid metadata JSON: {e}")

    if metadata is not None and not isinstance(metadata, dict):
        raise BadRequestException("metadata must be an object")

    upload = create_direct_upload(db, account_id, expiry=parse_expiry(expiry), metadata=metadata)
    return envelope_with_info({"id": upload.upload_id, "uploadURL": upload_url(upload.upload_id)})
