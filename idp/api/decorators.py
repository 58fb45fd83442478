"""
Flask decorators for authentication and authorization.

This module provides OAuth 2.0 Bearer Token validation for the admin and
claim preview endpoints. Implements RFC 6750 (Bearer Token) and validates
RS256 JWT tokens against the configured JWKS endpoint.
"""

import logging
from functools import wraps
from typing import Dict, List, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
)
from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

# Global JWKS client (cached singleton)
_jwks_client: Optional[PyJWKClient] = None

SCOPE_ATTRIBUTES_READ = "attributes:read"
SCOPE_ATTRIBUTES_WRITE = "attributes:write"
SCOPE_USERS_WRITE = "users:write"


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""
    pass


def get_jwks_client() -> PyJWKClient:
    """
    Get cached JWKS client (singleton pattern).

    Keys are cached for an hour; the kid from the JWT header selects the
    signing key.
    """
    global _jwks_client

    if _jwks_client is None:
        cfg = current_app.config["APP_CONFIG"]
        logger.info(f"Initializing JWKS client for: {cfg.jwks_url}")

        _jwks_client = PyJWKClient(
            cfg.jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
        )

    return _jwks_client


def validate_jwt_token(token: str) -> Dict[str, object]:
    """
    Validate JWT Bearer token: signature, exp, nbf, issuer and, when
    API_AUDIENCE is configured, audience.

    Args:
        token: JWT token string (without "Bearer " prefix)

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    if current_app.config.get("TESTING") and current_app.config.get("SKIP_OAUTH_FOR_TESTS", False):
        logger.warning("JWT validation SKIPPED (TESTING + SKIP_OAUTH_FOR_TESTS)")
        return {
            "sub": "test-user",
            "scope": " ".join([SCOPE_ATTRIBUTES_READ, SCOPE_ATTRIBUTES_WRITE, SCOPE_USERS_WRITE]),
            "iss": "test-issuer",
            "client_id": "test-client",
        }

    cfg = current_app.config["APP_CONFIG"]

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)

        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=cfg.idp_issuer,
            audience=cfg.api_audience or None,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_nbf": True,
                "verify_iss": True,
                "verify_aud": bool(cfg.api_audience),
                "require": ["exp", "iat"],
            },
            leeway=5,
        )

        client_id = claims.get("azp") or claims.get("client_id", "unknown")
        logger.debug(f"JWT validated for client: {client_id}, scopes: {claims.get('scope')}")

        return claims

    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer: {e}")
    except InvalidAudienceError as e:
        raise TokenValidationError(f"Invalid audience (token not for this API): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except Exception as e:
        logger.error(f"JWT validation failed: {e}")
        raise TokenValidationError(f"Token validation failed: {e}")


def _unauthorized(message: str):
    return jsonify({"error": "Unauthorized", "message": message}), 401


def require_oauth_token(scopes: Optional[List[str]] = None):
    """
    Decorator requiring a valid OAuth 2.0 Bearer Token.

    Args:
        scopes: Optional list of accepted scopes; the token needs at least one

    Example:
        @bp.route("/<uuid>/attributes", methods=["PATCH"])
        @require_oauth_token(scopes=[SCOPE_ATTRIBUTES_WRITE])
        def update_attributes(uuid):
            ...
    """
    if scopes is None:
        scopes = []

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth_header = request.headers.get("Authorization", "")

            if not auth_header:
                logger.warning("API request missing Authorization header")
                return _unauthorized("Authorization header required. Use 'Authorization: Bearer <token>'")

            if not auth_header.startswith("Bearer "):
                logger.warning("API request with invalid Authorization format")
                return _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

            token = auth_header[7:]
            if not token:
                return _unauthorized("Bearer token is empty")

            try:
                claims = validate_jwt_token(token)
            except TokenValidationError as e:
                logger.warning(f"JWT validation failed: {e}")
                return _unauthorized(str(e))

            if scopes:
                token_scopes = str(claims.get("scope", "")).split()
                if not any(scope in token_scopes for scope in scopes):
                    logger.warning(f"API request lacks required scopes. Required: {scopes}, token has: {token_scopes}")
                    return jsonify({
                        "error": "Forbidden",
                        "message": f"Insufficient scope. Required: {', '.join(scopes)}",
                    }), 403

            g.oauth_claims = claims
            g.oauth_client_id = claims.get("azp") or claims.get("client_id")

            return fn(*args, **kwargs)

        return wrapper
    return decorator


def get_oauth_client_id() -> str:
    """Client id of the validated token, "system" outside a request."""
    return getattr(g, "oauth_client_id", None) or "system"
