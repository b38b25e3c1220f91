# Overview: Service-layer operations for auth; user accounts, credentials and roles.

"""
Authentication and User Administration

WHY: Every stock movement is attributed to a user, so accounts and roles are
the root of the audit trail. Passwords are stored as bcrypt hashes only.

SECURITY NOTES:
- bcrypt cost factor comes from BCRYPT_ROUNDS (fixed per deployment)
- Minimum length from PASSWORD_MIN_LENGTH
- Unknown email and wrong password produce the same AuthError
- Tokens are issued by token_service.py; this module never sees them
"""

from __future__ import annotations

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import USER_ROLES, User
from ..time_utils import utcnow

PROFILE_FIELDS = ("name", "email", "phone", "dob", "avatar_url")


def normalize_email(email) -> str:
    return str(email or "").strip().lower()


def _validate_email(email: str) -> None:
    local, _, domain = email.partition("@")
    if not local or "." not in domain or " " in email:
        raise ValidationError("Invalid email address")


def validate_role(role) -> str:
    if role not in USER_ROLES:
        raise ValidationError("Role must be either admin or staff")
    return role


def validate_password_strength(password) -> None:
    """
    Validate password meets the configured minimum length.

    Raises ValidationError if requirements not met.
    """
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with the configured cost factor.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 10)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    A malformed stored hash counts as a mismatch.
    """
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def count_users() -> int:
    return db.session.query(User).count()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _email_taken(email: str, *, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def register_user(email, password, name, role="staff") -> User:
    """
    Create a user account.

    Raises:
        ValidationError: missing field, bad role, bad email or short password
        ConflictError: email already registered
    """
    email = normalize_email(email)
    name = str(name or "").strip()
    if not email or not password or not name or not role:
        raise ValidationError("email, password, name and role are required")

    _validate_email(email)
    validate_role(role)

    if _email_taken(email):
        raise ConflictError("User already exists")

    user = User(
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        created_at=utcnow(),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.session.rollback()
        raise ConflictError("User already exists")

    current_app.logger.info("Registered user id=%s role=%s", user.id, user.role)
    return user


def authenticate(email, password) -> User:
    """
    Verify credentials and stamp last_login_at.

    Raises AuthError("Invalid credentials") for an unknown email or a wrong
    password alike.
    """
    email = normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.session.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.password_hash):
        current_app.logger.warning("Failed login for email=%s", email)
        raise AuthError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def change_password(user: User, current_password, new_password) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current and new password are required")

    if not verify_password(current_password, user.password_hash):
        current_app.logger.warning("Password change rejected for user id=%s", user.id)
        raise AuthError("Incorrect current password")

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    db.session.commit()


def update_profile(user: User, payload: dict) -> User:
    """
    Self-service profile update.

    Only PROFILE_FIELDS are accepted; role and password have their own paths.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload.keys():
        if key not in PROFILE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    if "name" in payload:
        name = str(payload["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        user.name = name

    if "email" in payload:
        email = normalize_email(payload["email"])
        if not email:
            raise ValidationError("email cannot be blank")
        _validate_email(email)
        if email != user.email and _email_taken(email, exclude_user_id=user.id):
            raise ConflictError("Email already in use")
        user.email = email

    for key in ("phone", "dob", "avatar_url"):
        if key in payload:
            value = payload[key]
            user_value = str(value).strip() if value not in (None, "") else None
            setattr(user, key, user_value)

    user.updated_at = utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already in use")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_role(user_id: int, role) -> User:
    validate_role(role)
    user = get_user(user_id)
    user.role = role
    user.updated_at = utcnow()
    db.session.commit()
    current_app.logger.info("Changed role of user id=%s to %s", user.id, role)
    return user


def delete_user(user_id: int, *, actor: User) -> None:
    if user_id == actor.id:
        raise ValidationError("Cannot delete your own account")

    user = get_user(user_id)
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("User id=%s deleted by user id=%s", user_id, actor.id)
