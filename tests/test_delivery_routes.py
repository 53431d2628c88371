import io
import time
import pytest
from PIL import Image

from app.settings import settings
from app.signing.verifier import sign_delivery_url
from conftest import API, make_image_bytes

NO_AUTH = {"Authorization": ""}


@pytest.fixture
def enforce_signed_urls(monkeypatch):
    monkeypatch.setattr(settings, "enforce_signed_urls", True)


@pytest.fixture
def signing_key(test_client):
    resp = test_client.put(f"{API}/v1/keys/primary")
    assert resp.status_code == 200
    return resp.json()["result"]["value"]


def cdn(image_id, variant):
    return f"/cdn/acc1/{image_id}/{variant}"


# ------------------------------
# transforms
# ------------------------------

def test_deliver_jpeg_variant(test_client, upload, create_variant):
    create_variant("thumb", fit="cover", width=50, height=80)
    img_id = upload(data=make_image_bytes("JPEG", size=(100, 100)), filename="a.jpg")["id"]

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"
    out = Image.open(io.BytesIO(resp.content))
    assert out.format == "JPEG"
    assert out.size == (50, 80)


def test_deliver_png_variant(test_client, upload, create_variant):
    create_variant("small", fit="scale-down", width=40, height=40)
    img_id = upload(data=make_image_bytes("PNG", size=(200, 100)))["id"]

    resp = test_client.get(cdn(img_id, "small"), headers=NO_AUTH)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert Image.open(io.BytesIO(resp.content)).size == (40, 20)


def test_deliver_scale_down_never_enlarges(test_client, upload, create_variant):
    create_variant("big", fit="scale-down", width=200, height=200)
    img_id = upload(data=make_image_bytes("PNG", size=(100, 100)))["id"]

    resp = test_client.get(cdn(img_id, "big"), headers=NO_AUTH)
    assert Image.open(io.BytesIO(resp.content)).size == (100, 100)


def test_deliver_gif_unchanged(test_client, upload, create_variant):
    create_variant("thumb", fit="cover", width=5, height=5)
    data = make_image_bytes("GIF", size=(30, 30))
    img_id = upload(data=data, filename="a.gif")["id"]

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/gif"
    assert resp.content == data


def test_deliver_svg_unchanged(test_client, upload, create_variant):
    create_variant("thumb", fit="cover", width=5, height=5)
    data = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"></svg>'
    img_id = upload(data=data, filename="a.svg")["id"]

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/svg+xml"
    assert resp.content == data


def test_deliver_unrecognised_bytes(test_client, upload, create_variant):
    create_variant("thumb")
    img_id = upload(data=b"not an image at all")["id"]

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 500
    assert resp.text == "internal server error"


# ------------------------------
# not found
# ------------------------------

def test_unknown_image(test_client, create_variant):
    create_variant("thumb")
    resp = test_client.get(cdn("missing", "thumb"), headers=NO_AUTH)
    assert resp.status_code == 404
    assert resp.text == "image not found"


def test_unknown_variant(test_client, upload):
    img_id = upload()["id"]
    resp = test_client.get(cdn(img_id, "missing"), headers=NO_AUTH)
    assert resp.status_code == 404
    assert resp.text == "variant not found"


def test_missing_original_blob(test_client, upload, create_variant):
    create_variant("thumb")
    img_id = upload()["id"]
    test_client.app.state.s3.delete("acc1", img_id)

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 404
    assert resp.text == "image not found"


# ------------------------------
# signed URLs
# ------------------------------

def test_signed_url_valid(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb", width=5, height=5)
    img_id = upload(require_signed=True)["id"]

    url = sign_delivery_url(signing_key, "acc1", img_id, "thumb", int(time.time()) + 3600)
    resp = test_client.get(url, headers=NO_AUTH)
    assert resp.status_code == 200
    # reusable until expiry
    assert test_client.get(url, headers=NO_AUTH).status_code == 200


def test_signed_url_missing(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb")
    img_id = upload(require_signed=True)["id"]

    resp = test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH)
    assert resp.status_code == 403
    assert resp.text == "forbidden"


def test_signed_url_expired(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb")
    img_id = upload(require_signed=True)["id"]

    url = sign_delivery_url(signing_key, "acc1", img_id, "thumb", int(time.time()) - 10)
    assert test_client.get(url, headers=NO_AUTH).status_code == 403


def test_signed_url_wrong_key(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb")
    img_id = upload(require_signed=True)["id"]

    url = sign_delivery_url("not-the-key", "acc1", img_id, "thumb", int(time.time()) + 3600)
    assert test_client.get(url, headers=NO_AUTH).status_code == 403


def test_signed_url_for_other_variant(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb")
    create_variant("large")
    img_id = upload(require_signed=True)["id"]

    url = sign_delivery_url(signing_key, "acc1", img_id, "thumb", int(time.time()) + 3600)
    assert test_client.get(url.replace("/thumb?", "/large?"), headers=NO_AUTH).status_code == 403


def test_signed_url_without_any_key(test_client, upload, create_variant, enforce_signed_urls):
    create_variant("thumb")
    img_id = upload(require_signed=True)["id"]

    url = sign_delivery_url("whatever", "acc1", img_id, "thumb", int(time.time()) + 3600)
    assert test_client.get(url, headers=NO_AUTH).status_code == 403


def test_variant_can_opt_out_of_signing(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("public", never_require_signed=True)
    img_id = upload(require_signed=True)["id"]

    assert test_client.get(cdn(img_id, "public"), headers=NO_AUTH).status_code == 200


def test_unsigned_image_served_while_enforced(test_client, upload, create_variant, enforce_signed_urls):
    create_variant("thumb")
    img_id = upload(require_signed=False)["id"]

    assert test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH).status_code == 200


def test_signing_ignored_when_not_enforced(test_client, upload, create_variant, signing_key):
    create_variant("thumb")
    img_id = upload(require_signed=True)["id"]

    assert test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH).status_code == 200


def test_image_flag_change_takes_effect(test_client, upload, create_variant, enforce_signed_urls, signing_key):
    create_variant("thumb")
    img_id = upload()["id"]
    assert test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH).status_code == 200

    test_client.patch(f"{API}/v1/{img_id}", json={"requireSignedURLs": True})
    assert test_client.get(cdn(img_id, "thumb"), headers=NO_AUTH).status_code == 403
