from fastapi import APIRouter
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.backends import default_backend
from jose.utils import base64url_encode
from bukkapay.core.config import settings
from bukkapay.core.exceptions import NotFound
from bukkapay.core.security import get_public_key

router = APIRouter()


def _b64_uint(value: int) -> str:
    length = max(1, (value.bit_length() + 7) // 8)
    return base64url_encode(value.to_bytes(length, "big")).decode()


def signing_jwk(pem: str, kid: str) -> dict:
    """RFC 7517 entry for the RSA key that signs access tokens."""
    key = serialization.load_pem_public_key(pem.encode(), backend=default_backend())
    numbers = key.public_numbers()
    return {
        "kty": "RSA",
        "use": "sig",
        "alg": "RS256",
        "kid": kid,
        "n": _b64_uint(numbers.n),
        "e": _b64_uint(numbers.e),
    }


@router.get("/.well-known/jwks.json")
async def jwks():
    pem = get_public_key()
    if pem is None:
        raise NotFound("Tokens are signed with a shared secret; no public keys")
    return {"keys": [signing_jwk(pem, settings.JWT_KEY_ID)]}
