import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variables BEFORE importing app modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "image-delivery-bucket"
os.environ["BASE_URL"] = "http://testserver"
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)
os.environ.pop("AUTH_TOKEN", None)
os.environ.pop("ENFORCE_SIGNED_URLS", None)

from app.main import app

ACCOUNT_ID = "acc1"
API = f"/accounts/{ACCOUNT_ID}/images"
AUTH_HEADERS = {"Authorization": "Bearer test-token"}


def make_image_bytes(fmt="PNG", size=(10, 10), color="red", mode="RGB"):
    """Generate a simple valid image in-memory."""
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def test_client(aws_credentials):
    # The lifespan creates the bucket and tables inside the moto context
    with mock_aws():
        with TestClient(app) as client:
            client.headers.update(AUTH_HEADERS)
            yield client


@pytest.fixture
def upload(test_client):
    """Uploads bytes through the v1 API and returns the image object."""
    def _upload(data=None, filename="f.png", metadata=None, require_signed=False):
        data = data if data is not None else make_image_bytes()
        form = {}
        if metadata is not None:
            import json
            form["metadata"] = json.dumps(metadata)
        if require_signed:
            form["requireSignedURLs"] = "true"
        resp = test_client.post(f"{API}/v1", data=form, files={"file": (filename, data, "application/octet-stream")})
        assert resp.status_code == 200, resp.text
        return resp.json()["result"]
    return _upload


@pytest.fixture
def create_variant(test_client):
    def _create(variant_id, fit="scale-down", width=0, height=0, never_require_signed=False):
        resp = test_client.post(
            f"{API}/v1/variants",
            json={
                "id": variant_id,
                "options": {"fit": fit, "width": width, "height": height},
                "neverRequireSignedURLs": never_require_signed,
            },
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["result"]
    return _create
