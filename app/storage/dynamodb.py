import boto3
from boto3.dynamodb.conditions import Key
from typing import Optional, Dict, Any, Iterator, List
from botocore.exceptions import ClientError
from app.settings import settings
import logging

log = logging.getLogger(__name__)

UPLOADED_INDEX = "UploadedIndex"
THROUGHPUT = {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5}

def _table_definitions() -> List[Dict[str, Any]]:
    return [
        {
            "TableName": settings.images_table,
            "KeySchema": [
                {"AttributeName": "account_id", "KeyType": "HASH"},
                {"AttributeName": "image_id", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "account_id", "AttributeType": "S"},
                {"AttributeName": "image_id", "AttributeType": "S"},
                {"AttributeName": "sort_key", "AttributeType": "S"},
            ],
            "LocalSecondaryIndexes": [
                {
                    "IndexName": UPLOADED_INDEX,
                    "KeySchema": [
                        {"AttributeName": "account_id", "KeyType": "HASH"},
                        {"AttributeName": "sort_key", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
        },
        {
            "TableName": settings.variants_table,
            "KeySchema": [
                {"AttributeName": "account_id", "KeyType": "HASH"},
                {"AttributeName": "variant_id", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "account_id", "AttributeType": "S"},
                {"AttributeName": "variant_id", "AttributeType": "S"},
            ],
        },
        {
            "TableName": settings.signing_keys_table,
            "KeySchema": [
                {"AttributeName": "account_id", "KeyType": "HASH"},
                {"AttributeName": "name", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "account_id", "AttributeType": "S"},
                {"AttributeName": "name", "AttributeType": "S"},
            ],
        },
        {
            "TableName": settings.direct_uploads_table,
            "KeySchema": [{"AttributeName": "upload_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "upload_id", "AttributeType": "S"}],
        },
    ]

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        log.info("Initialized DynamoDB resource")

        # Ensure tables exist at initialization
        self.ensure_tables()

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_tables(self):
        for definition in _table_definitions():
            try:
                table = self.resource.Table(definition["TableName"])
                table.load()
            except ClientError:
                table = self.resource.create_table(ProvisionedThroughput=THROUGHPUT, **definition)
                table.wait_until_exists()
                log.info("Created table %s", definition["TableName"])

    def _query_all(self, table_name: str, **query_kwargs) -> Iterator[Dict[str, Any]]:
        table = self.resource.Table(table_name)
        while True:
            resp = table.query(**query_kwargs)
            yield from resp.get("Items", [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return
            query_kwargs["ExclusiveStartKey"] = last_key

    def _count(self, table_name: str, account_id: str) -> int:
        table = self.resource.Table(table_name)
        kwargs = {"KeyConditionExpression": Key("account_id").eq(account_id), "Select": "COUNT"}
        total = 0
        while True:
            resp = table.query(**kwargs)
            total += resp.get("Count", 0)
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return total
            kwargs["ExclusiveStartKey"] = last_key

    # ---- images ----

    def put_image(self, item: Dict[str, Any]):
        table = self.resource.Table(settings.images_table)
        table.put_item(Item=item)
        log.debug("Inserted image %s/%s", item.get("account_id"), item.get("image_id"))

    def get_image(self, account_id: str, image_id: str) -> Optional[Dict[str, Any]]:
        table = self.resource.Table(settings.images_table)
        resp = table.get_item(Key={"account_id": account_id, "image_id": image_id})
        return resp.get("Item")

    def delete_image(self, account_id: str, image_id: str) -> bool:
        table = self.resource.Table(settings.images_table)
        resp = table.delete_item(
            Key={"account_id": account_id, "image_id": image_id},
            ReturnValues="ALL_OLD",
        )
        log.debug("Deleted image %s/%s", account_id, image_id)
        return bool(resp.get("Attributes"))

    def count_images(self, account_id: str) -> int:
        return self._count(settings.images_table, account_id)

    def iter_images(
        self,
        account_id: str,
        after_sort_key: Optional[str] = None,
        descending: bool = False,
    ) -> Iterator[Dict[str, Any]]:
        """
            Yields an account's images in (uploaded, image_id) order, lazily,
            starting strictly after `after_sort_key` when one is given.
        """
        condition = Key("account_id").eq(account_id)
        if after_sort_key:
            if descending:
                condition = condition & Key("sort_key").lt(after_sort_key)
            else:
                condition = condition & Key("sort_key").gt(after_sort_key)
        return self._query_all(
            settings.images_table,
            IndexName=UPLOADED_INDEX,
            KeyConditionExpression=condition,
            ScanIndexForward=not descending,
            Limit=settings.query_batch_size,
        )

    # ---- variants ----

    def put_variant(self, item: Dict[str, Any], overwrite: bool = True):
        """Writes a variant; with overwrite=False an existing id raises ConditionalCheckFailedException."""
        table = self.resource.Table(settings.variants_table)
        kwargs = {"Item": item}
        if not overwrite:
            kwargs["ConditionExpression"] = "attribute_not_exists(variant_id)"
        table.put_item(**kwargs)
        log.debug("Inserted variant %s/%s", item.get("account_id"), item.get("variant_id"))

    def get_variant(self, account_id: str, variant_id: str) -> Optional[Dict[str, Any]]:
        table = self.resource.Table(settings.variants_table)
        resp = table.get_item(Key={"account_id": account_id, "variant_id": variant_id})
        return resp.get("Item")

    def list_variants(self, account_id: str) -> List[Dict[str, Any]]:
        return list(self._query_all(
            settings.variants_table,
            KeyConditionExpression=Key("account_id").eq(account_id),
        ))

    def delete_variant(self, account_id: str, variant_id: str) -> bool:
        table = self.resource.Table(settings.variants_table)
        resp = table.delete_item(
            Key={"account_id": account_id, "variant_id": variant_id},
            ReturnValues="ALL_OLD",
        )
        return bool(resp.get("Attributes"))

    def count_variants(self, account_id: str) -> int:
        return self._count(settings.variants_table, account_id)

    # ---- signing keys ----

    def put_signing_key(self, item: Dict[str, Any], overwrite: bool = True):
        table = self.resource.Table(settings.signing_keys_table)
        kwargs = {"Item": item}
        if not overwrite:
            kwargs["ConditionExpression"] = "attribute_not_exists(#n)"
            kwargs["ExpressionAttributeNames"] = {"#n": "name"}
        table.put_item(**kwargs)
        log.debug("Inserted signing key %s/%s", item.get("account_id"), item.get("name"))

    def list_signing_keys(self, account_id: str) -> List[Dict[str, Any]]:
        return list(self._query_all(
            settings.signing_keys_table,
            KeyConditionExpression=Key("account_id").eq(account_id),
        ))

    def delete_signing_key(self, account_id: str, name: str) -> bool:
        table = self.resource.Table(settings.signing_keys_table)
        resp = table.delete_item(
            Key={"account_id": account_id, "name": name},
            ReturnValues="ALL_OLD",
        )
        return bool(resp.get("Attributes"))

    # ---- direct uploads ----

    def put_direct_upload(self, item: Dict[str, Any]):
        table = self.resource.Table(settings.direct_uploads_table)
        table.put_item(Item=item)
        log.debug("Inserted direct upload %s", item.get("upload_id"))

    def get_direct_upload(self, upload_id: str) -> Optional[Dict[str, Any]]:
        table = self.resource.Table(settings.direct_uploads_table)
        resp = table.get_item(Key={"upload_id": upload_id})
        return resp.get("Item")

    def complete_direct_upload(self, upload_id: str):
        table = self.resource.Table(settings.direct_uploads_table)
        table.update_item(
            Key={"upload_id": upload_id},
            UpdateExpression="SET completed = :done",
            ExpressionAttributeValues={":done": True},
        )

    def close(self):
        log.info("Closed DynamoDB resource")
