import boto3
from botocore.exceptions import ClientError
from app.settings import settings
import logging

log = logging.getLogger(__name__)

class BlobNotFoundError(Exception):
    """Raised when no original is stored for an account/image pair."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"blob not found: {key}")

def blob_key(account_id: str, image_id: str) -> str:
    return f"{account_id}/{image_id}/original"

# -------------------------
# S3 Service
# -------------------------
class S3Service:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=settings.s3_bucket)
            log.debug("Bucket %s already exists", settings.s3_bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket"):
                self.client.create_bucket(Bucket=settings.s3_bucket)
                log.info("Created bucket %s", settings.s3_bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def upload(self, fileobj, account_id: str, image_id: str, content_type: str):
        key = blob_key(account_id, image_id)
        self.client.upload_fileobj(
            Fileobj=fileobj,
            Bucket=settings.s3_bucket,
            Key=key,
            ExtraArgs={"ContentType": content_type},
        )
        log.debug("Uploaded s3://%s/%s", settings.s3_bucket, key)

    def retrieve(self, account_id: str, image_id: str) -> bytes:
        key = blob_key(account_id, image_id)
        try:
            resp = self.client.get_object(Bucket=settings.s3_bucket, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
                raise BlobNotFoundError(key)
            raise
        return resp["Body"].read()

    def delete(self, account_id: str, image_id: str):
        key = blob_key(account_id, image_id)
        self.client.delete_object(Bucket=settings.s3_bucket, Key=key)
        log.debug("Deleted s3://%s/%s", settings.s3_bucket, key)

    def close(self):
        self.client.close()
        log.info("Closed S3 client")
