from typing import List
from uuid import uuid4
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.signing.models import SigningKey
from app.image_service.models import format_timestamp, parse_timestamp
from app.exceptions import BadRequestException, DynamoDBException, SigningKeyNotFoundException

log = logging.getLogger(__name__)

DEFAULT_KEY_NAME = "default"

def _put_key(db: DynamoDBService, account_id: str, key: SigningKey, overwrite: bool):
    db.put_signing_key(
        {
            "account_id": account_id,
            "name": key.name,
            "value": key.value,
            "created_at": format_timestamp(key.created_at),
        },
        overwrite=overwrite,
    )

def create_signing_key(db: DynamoDBService, account_id: str, name: str) -> SigningKey:
    """Registers a new key with a random secret value."""
    if not name:
        raise BadRequestException("signing key name is required")
    key = SigningKey(name=name, value=str(uuid4()))
    try:
        _put_key(db, account_id, key, overwrite=False)
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            raise BadRequestException(f"failed to create signing key: '{name}' already exists")
        log.error(f"DynamoDB put_signing_key failed: {e}")
        raise DynamoDBException(f"failed to create signing key: {e}")
    except BotoCoreError as e:
        log.error(f"DynamoDB put_signing_key failed: {e}")
        raise DynamoDBException(f"failed to create signing key: {e}")
    log.info("Created signing key %s/%s", account_id, name)
    return key

def list_signing_keys(db: DynamoDBService, account_id: str) -> List[SigningKey]:
    try:
        items = db.list_signing_keys(account_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB list_signing_keys failed: {e}")
        raise DynamoDBException(f"failed to list signing keys: {e}")
    return [
        SigningKey(name=item["name"], value=item["value"], created_at=parse_timestamp(item["created_at"]))
        for item in items
    ]

def delete_signing_key(db: DynamoDBService, account_id: str, name: str):
    """Deletes a key; removing the last one registers a fresh `default` key."""
    try:
        deleted = db.delete_signing_key(account_id, name)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_signing_key failed: {e}")
        raise DynamoDBException(f"failed to delete signing key: {e}")
    if not deleted:
        raise SigningKeyNotFoundException(name)

    if not list_signing_keys(db, account_id):
        _put_key(db, account_id, SigningKey(name=DEFAULT_KEY_NAME, value=str(uuid4())), overwrite=True)
        log.info("Recreated default signing key for %s", account_id)
