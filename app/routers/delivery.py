from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from typing import Optional

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.dependencies.dependencies import get_s3_service, get_dynamodb_service
from app.delivery.service import deliver_image
from app.image_service.direct_upload import complete_direct_upload, open_direct_upload
from app.image_service.service import render_image
from app.envelope import success_response
from app.exceptions import BadRequestException

# Unauthenticated endpoints: delivery and direct-upload consumption
router = APIRouter(tags=["delivery"])

@router.get("/cdn/{account_id}/{image_id}/{variant_name}")
def deliver(
    request: Request,
    account_id: str,
    image_id: str,
    variant_name: str,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Serves the image transformed by the named variant."""
    data, content_type = deliver_image(db, s3, account_id, image_id, variant_name, request.query_params)
    return Response(content=data, media_type=content_type)

@router.post("/upload/{upload_id}")
async def handle_direct_upload(
    upload_id: str,
    file: Optional[UploadFile] = File(None),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Consumes a direct-upload URL."""
    upload = open_direct_upload(db, upload_id)
    if file is None:
        raise BadRequestException("missing required field: file")

    image = complete_direct_upload(db, s3, upload, file.file, file.filename or "")
    return success_response(render_image(db, image))
