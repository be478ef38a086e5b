"""Bearer token verification (ES256).

Identity is issued elsewhere; this service only verifies access tokens
and reads ``sub`` and ``roles`` from them. With JWT_PUBLIC_KEY set, the
issuer's PEM public key is the only trusted key and no tokens can be
minted here. Without it (dev, test) an ephemeral key pair is generated
on import so tests and local scripts can mint their own tokens.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from coursehub.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "identity"
AUDIENCE = "coursehub"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.jwt_public_key:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = serialization.load_pem_public_key(
        SETTINGS.jwt_public_key.encode()
    )
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    """Sign an access token with the local dev key.

    Raises RuntimeError when the service runs with an external public key.
    """
    if _private_key is None:
        raise RuntimeError("token minting is disabled when JWT_PUBLIC_KEY is set")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    The algorithm is pinned to ES256; exp, iss and aud are checked by PyJWT.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat"]},
    )
