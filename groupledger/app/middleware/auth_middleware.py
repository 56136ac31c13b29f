"""
middleware/auth_middleware.py — Bearer-token authentication for API routes.

Tokens are minted by an external identity provider; this service only
verifies them. A token is accepted when:
  - it arrives as "Authorization: Bearer <jwt>"
  - its signature checks out against JWT_SECRET_KEY (JWT_ALGORITHM)
  - it has not expired (JWT_LEEWAY_SECONDS of clock skew allowed)
  - it carries a non-blank string `sub`, the caller's user id

The user id lands on flask.g.user_id. Whether that user may touch a given
group is decided by the services (403), never here (401 only).

  TOKEN_MISSING  no Authorization header
  TOKEN_INVALID  wrong scheme, bad signature, malformed token, no usable sub
  TOKEN_EXPIRED  exp is in the past
"""

from __future__ import annotations

import functools
from typing import Callable, Mapping

import jwt
from flask import current_app, g, request

from groupledger.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """Route decorator; the wrapped view can rely on g.user_id being set."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token(request.headers.get("Authorization", ""))
        g.user_id = decode_access_token(token, current_app.config)
        return f(*args, **kwargs)

    return decorated


def _bearer_token(header: str) -> str:
    if not header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return token


def decode_access_token(token: str, config: Mapping) -> str:
    """
    Verifies `token` and returns its subject (the user id).

    Raises AppError(TOKEN_EXPIRED | TOKEN_INVALID, 401).
    """
    try:
        claims = jwt.decode(
            token,
            config["JWT_SECRET_KEY"],
            algorithms=[config.get("JWT_ALGORITHM", "HS256")],
            leeway=config.get("JWT_LEEWAY_SECONDS", 0),
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Obtain a new one from your identity provider.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is missing a valid 'sub' claim.",
            401,
        )
    return subject.strip()
