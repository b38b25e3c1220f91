# Overview: Service-layer operations for bearer tokens; issues and verifies signed tokens.

"""
Stateless Bearer Tokens

Tokens are signed with SECRET_KEY (itsdangerous, shipped with Flask) and
carry {user_id, email, role}. Nothing is stored server-side; validity is the
signature plus age (TOKEN_MAX_AGE_SECONDS, 24h by default).

SECURITY: The role claim is informational. validate_token() re-reads the
user row and the caller authorizes with the live role, so a demoted or
deleted user loses access before the token expires.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..extensions import db
from ..models import User

TOKEN_SALT = "freshcount-auth-token"


@dataclass
class TokenContext:
    """Result of a successful token validation."""
    user: User
    claims: dict


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user: User) -> str:
    claims = {"user_id": user.id, "email": user.email, "role": user.role}
    return _serializer().dumps(claims)


def decode_token(token: str) -> dict | None:
    """Return the claims of a valid, unexpired token, else None."""
    max_age = current_app.config.get("TOKEN_MAX_AGE_SECONDS", 86400)
    try:
        claims = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Rejected expired token")
        return None
    except BadSignature:
        current_app.logger.warning("Rejected token with bad signature")
        return None

    if not isinstance(claims, dict) or not isinstance(claims.get("user_id"), int):
        return None
    return claims


def validate_token(token: str) -> TokenContext | None:
    """
    Validate token and resolve the user it names.

    Returns None when the token is invalid, expired, or its user no longer
    exists.
    """
    claims = decode_token(token)
    if claims is None:
        return None

    user = db.session.get(User, claims["user_id"])
    if user is None:
        return None

    return TokenContext(user=user, claims=claims)
