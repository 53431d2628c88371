from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, Response
from typing import Optional
from io import BytesIO
import json
import logging
import httpx

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import BlobNotFoundError, S3Service
from app.dependencies.dependencies import get_s3_service, get_dynamodb_service, require_auth
from app.image_service.service import (
    count_images,
    fetch_images,
    get_image_meta,
    remove_image,
    render_image,
    render_images,
    save_image_and_meta,
    update_image,
)
from app.image_service.models import UpdateImageRequest
from app.image_processing.formats import content_type_for, detect_format
from app.envelope import ResultInfo, paginated_response, success_response
from app.exceptions import BadRequestException, NotFoundException
from app.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/accounts/{account_id}/images/v1",
    tags=["images"],
    dependencies=[Depends(require_auth)],
)

DEFAULT_PER_PAGE = 1000
MAX_PER_PAGE = 10000

def _positive_int(value: Optional[str], default: int) -> int:
    try:
        parsed = int(value) if value else default
    except ValueError:
        return default
    return parsed if parsed > 0 else default

def parse_metadata_form(metadata: Optional[str]) -> dict:
    if not metadata:
        return {}
    try:
        parsed = json.loads(metadata)
    except json.JSONDecodeError as e:
        raise BadRequestException(f"invalid metadata JSON: {e}")
    if not isinstance(parsed, dict):
        raise BadRequestException("invalid metadata JSON: expected an object")
    return parsed

async def fetch_remote_image(url: str) -> bytes:
    """Downloads an image to be stored from a caller-supplied URL."""
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        raise BadRequestException(f"failed to fetch url: {e}")
    return resp.content

@router.post("")
async def upload_image(
    account_id: str,
    file: Optional[UploadFile] = File(None),
    url: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    requireSignedURLs: Optional[str] = Form(None),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Uploads an image from a multipart file or a URL."""
    if file is not None:
        contents = await file.read()
        filename = file.filename or ""
    elif url:
        contents = await fetch_remote_image(url)
        filename = url.rstrip("/").split("/")[-1]
    else:
        raise BadRequestException("missing required field: file or url")

    meta = parse_metadata_form(metadata)

    image = save_image_and_meta(
        db=db,
        s3=s3,
        fileobj=BytesIO(contents),
        account_id=account_id,
        filename=filename,
        meta=meta,
        require_signed_urls=requireSignedURLs == "true",
    )
    return success_response(render_image(db, image))

@router.get("")
def list_images_handler(
    account_id: str,
    page: Optional[str] = Query(None),
    per_page: Optional[str] = Query(None),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Offset-paginated listing ordered by upload time."""
    page_number = _positive_int(page, 1)
    page_size = min(_positive_int(per_page, DEFAULT_PER_PAGE), MAX_PER_PAGE)

    images, total = fetch_images(db, account_id, page=page_number, per_page=page_size)
    info = ResultInfo(
        page=page_number,
        per_page=page_size,
        count=len(images),
        total_count=total,
        total_pages=(total + page_size - 1) // page_size,
    )
    return paginated_response({"images": render_images(db, account_id, images)}, info)

@router.get("/stats")
def get_stats(
    account_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Image count against the configured allowance."""
    current = count_images(db, account_id)
    return success_response({"count": {"current": current, "allowed": settings.image_allowance}})

@router.get("/{image_id}")
def get_image(
    account_id: str,
    image_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Gets image details."""
    image = get_image_meta(db, account_id, image_id)
    return success_response(render_image(db, image))

@router.patch("/{image_id}")
def patch_image(
    account_id: str,
    image_id: str,
    body: UpdateImageRequest,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Replaces metadata and/or the signed-URL requirement."""
    image = update_image(
        db,
        account_id,
        image_id,
        meta=body.metadata,
        require_signed_urls=body.requireSignedURLs,
    )
    return success_response(render_image(db, image))

@router.delete("/{image_id}")
def delete_image(
    account_id: str,
    image_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Deletes an image and its stored original."""
    remove_image(db, s3, account_id, image_id)
    return success_response({})

@router.get("/{image_id}/blob")
def get_image_blob(
    account_id: str,
    image_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Streams the original bytes with a sniffed content type."""
    image = get_image_meta(db, account_id, image_id)
    try:
        data = s3.retrieve(account_id, image_id)
    except BlobNotFoundError:
        raise NotFoundException("image blob not found")

    return Response(
        content=data,
        media_type=content_type_for(detect_format(data)),
        headers={"Content-Disposition": f'inline; filename="{image.filename}"'},
    )
