"""
    Signed-URL verification for image delivery.

    A delivery URL is authorised by `sig`, the lowercase hex HMAC-SHA256 of
    the delivery path concatenated with the decimal `exp` query value, keyed
    with any signing key currently registered to the account. The URL stays
    valid (and reusable) until `exp` passes.
"""
from typing import Iterable, Mapping, Optional
import hashlib
import hmac
import re
import time

_EXP_PATTERN = re.compile(r"^[+-]?[0-9]+$")
_HEX_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2})*$")

def delivery_path(account_id: str, image_id: str, variant_name: str) -> str:
    return f"/cdn/{account_id}/{image_id}/{variant_name}"

def requires_signature(enforce: bool, require_signed_urls: bool, never_require_signed_urls: bool) -> bool:
    """Signature is checked only when enforcement, the image flag and the variant all demand it."""
    return enforce and require_signed_urls and not never_require_signed_urls

def compute_signature(secret: str, path: str, exp: str) -> str:
    return hmac.new(secret.encode(), (path + exp).encode(), hashlib.sha256).hexdigest()

def sign_delivery_url(secret: str, account_id: str, image_id: str, variant_name: str, exp: int) -> str:
    """Builds the signed path+query a client would request."""
    path = delivery_path(account_id, image_id, variant_name)
    return f"{path}?exp={exp}&sig={compute_signature(secret, path, str(exp))}"

def verify_signature(
    query: Mapping[str, str],
    account_id: str,
    image_id: str,
    variant_name: str,
    secrets: Iterable[str],
    now: Optional[float] = None,
) -> bool:
    """Returns True only if `sig` matches one of the secrets and `exp` has not passed."""
    sig_hex = query.get("sig") or ""
    exp = query.get("exp") or ""
    if not sig_hex or not exp:
        return False

    if not _EXP_PATTERN.match(exp):
        return False
    current = int(now if now is not None else time.time())
    if current > int(exp):
        return False

    if not _HEX_PATTERN.match(sig_hex):
        return False
    sig = bytes.fromhex(sig_hex)

    message = (delivery_path(account_id, image_id, variant_name) + exp).encode()
    for secret in secrets:
        expected = hmac.new(secret.encode(), message, hashlib.sha256).digest()
        if hmac.compare_digest(sig, expected):
            return True
    return False
