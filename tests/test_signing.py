import pytest

from app.signing.verifier import (
    compute_signature,
    delivery_path,
    requires_signature,
    sign_delivery_url,
    verify_signature,
)

NOW = 1_700_000_000
SECRET = "s3cret"


def signed_query(secret=SECRET, exp=NOW + 3600, path=None):
    path = path or delivery_path("acc1", "img1", "thumb")
    return {"exp": str(exp), "sig": compute_signature(secret, path, str(exp))}


def verify(query, secrets=(SECRET,), now=NOW):
    return verify_signature(query, "acc1", "img1", "thumb", list(secrets), now=now)


def test_valid_signature():
    assert verify(signed_query())


def test_signature_valid_until_expiry_second():
    assert verify(signed_query(exp=NOW), now=NOW)
    assert not verify(signed_query(exp=NOW), now=NOW + 1)


def test_expired_signature():
    assert not verify(signed_query(exp=NOW - 1))


def test_altered_signature():
    query = signed_query()
    sig = query["sig"]
    query["sig"] = ("0" if sig[0] != "0" else "1") + sig[1:]
    assert not verify(query)


def test_altered_expiry():
    query = signed_query()
    query["exp"] = str(NOW + 7200)
    assert not verify(query)


def test_signature_for_other_path():
    query = signed_query(path=delivery_path("acc1", "img2", "thumb"))
    assert not verify(query)


def test_no_keys_registered():
    assert not verify(signed_query(), secrets=())


def test_any_registered_key_matches():
    assert verify(signed_query(secret="second"), secrets=("first", "second"))


@pytest.mark.parametrize(
    "query",
    [
        {},
        {"exp": str(NOW + 60)},
        {"sig": "abcd"},
        {"exp": "soon", "sig": "abcd"},
        {"exp": str(NOW + 60), "sig": "not-hex"},
        {"exp": str(NOW + 60), "sig": "abc"},
    ],
)
def test_malformed_queries(query):
    assert not verify(query)


def test_sign_delivery_url():
    url = sign_delivery_url(SECRET, "acc1", "img1", "thumb", NOW + 3600)
    path, query_string = url.split("?")
    assert path == "/cdn/acc1/img1/thumb"
    query = dict(part.split("=") for part in query_string.split("&"))
    assert query["exp"] == str(NOW + 3600)
    assert verify(query)


@pytest.mark.parametrize(
    "enforce, require, never, expected",
    [
        (True, True, False, True),
        (True, True, True, False),
        (True, False, False, False),
        (False, True, False, False),
    ],
)
def test_requires_signature(enforce, require, never, expected):
    assert requires_signature(enforce, require, never) is expected
