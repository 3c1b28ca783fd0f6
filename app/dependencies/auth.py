import logging
from typing import Optional

import jwt  # PyJWT
from fastapi import Header

from app.core import config
from app.core.errors import BillingError, Unauthorized

logger = logging.getLogger(__name__)

# PyJWKClient caches fetched signing keys; one instance per JWKS URL
_JWKS_CLIENTS: dict = {}


class AuthMisconfigured(BillingError):
    message = "Server misconfiguration: authentication is not set up"


def _jwks_client(supabase_url: str) -> jwt.PyJWKClient:
    jwks_url = f"{supabase_url}/auth/v1/.well-known/jwks.json"
    client = _JWKS_CLIENTS.get(jwks_url)
    if client is None:
        client = jwt.PyJWKClient(jwks_url, cache_keys=True, lifespan=3600)
        _JWKS_CLIENTS[jwks_url] = client
    return client


def _decode_options() -> dict:
    kwargs = {}
    if config.SUPABASE_JWT_AUDIENCE:
        kwargs["audience"] = config.SUPABASE_JWT_AUDIENCE
    else:
        kwargs["options"] = {"verify_aud": False}
    return kwargs


def verify_supabase_token(authorization: Optional[str] = Header(None)) -> dict:
    """
    Verifies the Supabase JWT bearer token and returns its claims.
    HS256 (legacy shared secret) uses SUPABASE_JWT_SECRET; ES256/RS256 use the project JWKS.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()

    token = authorization[len("Bearer "):].strip()
    # Reject common invalid token values sent by the frontend before sign-in completes
    if not token or token.lower() in ("null", "undefined", "none"):
        raise Unauthorized()

    try:
        algo = jwt.get_unverified_header(token).get("alg")
    except jwt.PyJWTError as e:
        logger.info("[AUTH] Failed to decode token header: %s", e)
        raise Unauthorized("Invalid token")

    if algo == "HS256":
        if not config.SUPABASE_JWT_SECRET:
            logger.error("[AUTH] SUPABASE_JWT_SECRET is missing in environment variables")
            raise AuthMisconfigured()
        key = config.SUPABASE_JWT_SECRET
    elif algo in ("ES256", "RS256"):
        if not config.SUPABASE_URL:
            logger.error("[AUTH] SUPABASE_URL is missing for %s verification", algo)
            raise AuthMisconfigured()
        try:
            key = _jwks_client(config.SUPABASE_URL).get_signing_key_from_jwt(token).key
        except jwt.PyJWTError as e:
            logger.warning("[AUTH] Could not resolve signing key: %s", e)
            raise Unauthorized("Invalid token")
    else:
        logger.info("[AUTH] Unsupported token algorithm: %s", algo)
        raise Unauthorized("Invalid token")

    try:
        payload = jwt.decode(token, key, algorithms=[algo], **_decode_options())
    except jwt.PyJWTError as e:
        logger.info("[AUTH] %s verification failed: %s", algo, e)
        raise Unauthorized("Invalid token")

    if not payload.get("sub"):
        raise Unauthorized("Invalid token")
    return payload


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """FastAPI dependency returning the caller's subject id (users.id)."""
    return verify_supabase_token(authorization)["sub"]
