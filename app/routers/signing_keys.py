from fastapi import APIRouter, Depends

from app.storage.dynamodb import DynamoDBService
from app.dependencies.dependencies import get_dynamodb_service, require_auth
from app.signing import service
from app.envelope import success_response

router = APIRouter(
    prefix="/accounts/{account_id}/images/v1/keys",
    tags=["signing-keys"],
    dependencies=[Depends(require_auth)],
)

@router.get("")
def list_signing_keys(
    account_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    keys = service.list_signing_keys(db, account_id)
    return success_response({"keys": [k.model_dump() for k in sorted(keys, key=lambda k: k.name)]})

@router.put("/{signing_key_name}")
def create_signing_key(
    account_id: str,
    signing_key_name: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Registers a key whose value can sign delivery URLs."""
    key = service.create_signing_key(db, account_id, signing_key_name)
    return success_response(key.model_dump())

@router.delete("/{signing_key_name}")
def delete_signing_key(
    account_id: str,
    signing_key_name: str,
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    service.delete_signing_key(db, account_id, signing_key_name)
    return success_response({})
