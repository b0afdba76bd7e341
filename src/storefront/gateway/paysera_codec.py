"""Paysera request/callback encoding.

Paysera exchanges parameters as a URL-safe base64 encoded query string in
``data``, signed as ``md5(data + sign_password)``. The same signature is
sent as ``sign`` on outgoing requests and comes back as ``ss1`` on callbacks.
"""

import base64
import hashlib
import hmac
from urllib.parse import parse_qsl, urlencode

from storefront.errors import GatewaySignatureInvalid

PROTOCOL_VERSION = "1.6"


def encode_data(params: dict) -> str:
    query = urlencode({key: value for key, value in params.items() if value is not None})
    return base64.urlsafe_b64encode(query.encode("utf-8")).decode("ascii")


def decode_data(data: str) -> dict[str, str]:
    try:
        padded = data + "=" * (-len(data) % 4)
        query = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeError) as exc:
        raise GatewaySignatureInvalid("Malformed Paysera data") from exc
    return dict(parse_qsl(query, keep_blank_values=True))


def sign(data: str, password: str) -> str:
    return hashlib.md5((data + password).encode("utf-8")).hexdigest()  # noqa: S324


def verify(data: str, signature: str, password: str) -> bool:
    if not password:
        return False
    return hmac.compare_digest(sign(data, password).encode("ascii"), (signature or "").encode("utf-8", "replace"))
