from fastapi import APIRouter, Depends
import logging

from app.storage.dynamodb import DynamoDBService
from app.dependencies.dependencies import get_dynamodb_service, require_auth
from app.variants.models import CreateVariantRequest, UpdateVariantRequest
from app.variants import service
from app.envelope import success_response

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/accounts/{account_id}/images/v1/variants",
    tags=["variants"],
    dependencies=[Depends(require_auth)],
)

@router.post("")
def create_variant(
    account_id: str,
    body: CreateVariantRequest,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Creates a named resize/crop preset."""
    variant = service.create_variant(db, account_id, body)
    return success_response(variant.model_dump())

@router.get("")
def list_variants(
    account_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Lists variants keyed by id."""
    variants = service.list_variants(db, account_id)
    return success_response({"variants": {v.id: v.model_dump() for v in variants}})

@router.get("/{variant_id}")
def get_variant(
    account_id: str,
    variant_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    variant = service.get_variant(db, account_id, variant_id)
    return success_response(variant.model_dump())

@router.patch("/{variant_id}")
def update_variant(
    account_id: str,
    variant_id: str,
    body: UpdateVariantRequest,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    variant = service.update_variant(db, account_id, variant_id, body)
    return success_response(variant.model_dump())

@router.delete("/{variant_id}")
def delete_variant(
    account_id: str,
    variant_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    service.delete_variant(db, account_id, variant_id)
    return success_response({})
