"""JWTs that carry the caller's identity.

Sign-in itself happens upstream (magic link, OAuth, whatever the product
uses); this service only needs to prove "this request comes from user X
with email Y".  Two token flavors share one key pair:

  access token   sent as ``Authorization: Bearer ...`` by API clients
  session token  stored in the ``session`` cookie by the browser app

They differ only in audience, so neither can be replayed as the other.

Verification keys, first match wins:

  JWKS_URL         the identity provider's key set, picked by ``kid``
  JWT_PUBLIC_KEY   a single PEM public key
  (neither)        an ephemeral key generated on import, dev/test only

Only the ephemeral key can sign, so ``create_*`` is for dev and tests.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_public_key
from jwt import PyJWKClient

from tenantguard.core.config import SETTINGS
from tenantguard.models.context import Identity

# Dev/test: ephemeral key generated on import.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

DEV_ALGORITHM = "ES256"
ACCESS_TOKEN_TTL_MIN = 15
SESSION_TTL_MIN = 60 * 24 * 7


def access_audience() -> str:
    return SETTINGS.jwt_audience


def session_audience() -> str:
    return f"{SETTINGS.jwt_audience}-session"


@lru_cache(maxsize=4)
def _jwks_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url)


@lru_cache(maxsize=4)
def _configured_public_key(pem: str) -> Any:
    try:
        return load_pem_public_key(pem.encode())
    except ValueError as e:
        raise jwt.InvalidKeyError(f"JWT_PUBLIC_KEY is not a valid PEM key: {e}") from None


def _verification(token: str) -> tuple[Any, str]:
    if SETTINGS.jwks_url:
        signing_key = _jwks_client(SETTINGS.jwks_url).get_signing_key_from_jwt(token)
        return signing_key.key, SETTINGS.jwt_algorithm
    if SETTINGS.jwt_public_key:
        return _configured_public_key(SETTINGS.jwt_public_key), SETTINGS.jwt_algorithm
    return _public_key, DEV_ALGORITHM


def _encode(*, sub: str, email: str, name: str, audience: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "email": email,
        "name": name,
        "iss": SETTINGS.jwt_issuer,
        "aud": audience,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=DEV_ALGORITHM)


def _decode(token: str, audience: str) -> dict:
    key, algorithm = _verification(token)
    return jwt.decode(
        token,
        key,
        algorithms=[algorithm],
        issuer=SETTINGS.jwt_issuer,
        audience=audience,
        options={"require": ["sub", "exp", "iat"]},
    )


def create_access_token(*, sub: str, email: str, name: str = "") -> str:
    return _encode(
        sub=sub,
        email=email,
        name=name,
        audience=access_audience(),
        ttl=timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
    )


def decode_access_token(token: str) -> dict:
    """Verify signature and claims.  The algorithm is pinned by config.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return _decode(token, access_audience())


def create_session_token(*, sub: str, email: str, name: str = "") -> str:
    return _encode(
        sub=sub,
        email=email,
        name=name,
        audience=session_audience(),
        ttl=timedelta(minutes=SESSION_TTL_MIN),
    )


def decode_session_token(token: str) -> dict:
    return _decode(token, session_audience())


def identity_from_claims(claims: dict) -> Identity:
    """Raises jwt.InvalidTokenError when ``sub`` is not a UUID."""
    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        raise jwt.InvalidTokenError("sub is not a valid user id") from None
    email = claims.get("email") or None
    return Identity(
        user_id=user_id,
        email=email.strip() if email else None,
        name=claims.get("name") or "",
    )
