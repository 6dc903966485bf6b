# Overview: Password hashing, login, and staff account management.

"""
Authentication Service

WHY: Every sale must be attributable to the account that rang it up.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_LOG_ROUNDS, 12 by default)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
- Deactivated accounts cannot log in and lose their open sessions
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from ..validation import ConflictError, NotFoundError, ValidationError, page_params, pagination, require_choice
from partspos.time_utils import utcnow
from .session_service import revoke_all_user_sessions


USER_MUTABLE_FIELDS = {"username", "email", "first_name", "last_name", "phone", "role", "is_active"}
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt at the configured cost."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    return email


def _check_unique(username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    if username:
        q = db.session.query(User.id).filter(User.username == username)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Username already taken")
    if email:
        q = db.session.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Email already registered")


def create_user(
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = "staff",
    phone: str | None = None,
    created_by_user_id: int | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: missing names, bad email, unknown role
        ConflictError: username or email already exists
        PasswordValidationError: password doesn't meet requirements
    """
    username = (username or "").strip()
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    if not username or not first_name or not last_name:
        raise ValidationError("username, first_name and last_name are required")
    email = _normalize_email(email)
    require_choice("role", role, ROLES)

    _check_unique(username, email)

    user = User(
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone=(phone or "").strip() or None,
        role=role,
        password_hash=hash_password(password),
        created_by_user_id=created_by_user_id,
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("User %s created with role %s", user.username, user.role)
    return user


def authenticate(login: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User and stamps last_login_at when the credentials match an
    active account; None otherwise.
    """
    if not login or not password:
        return None

    login = login.strip()
    user = db.session.query(User).filter(
        db.or_(User.username == login, User.email == login.lower()),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        current_app.logger.warning("Failed login attempt for %s", login)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("Staff member not found")
    return user


def list_users(role: str | None = None) -> list[User]:
    q = db.session.query(User)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def search_users(
    *,
    page=None,
    limit=None,
    role: str | None = None,
    search: str | None = None,
) -> dict:
    """
    Active users, newest first, one page at a time.

    search is matched case-insensitively against first name, last name,
    email and username.
    """
    page, limit = page_params(page, limit)

    q = db.session.query(User).filter(User.is_active.is_(True))
    if role:
        q = q.filter(User.role == require_choice("role", role, ROLES))
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(db.or_(
            User.first_name.ilike(term),
            User.last_name.ilike(term),
            User.email.ilike(term),
            User.username.ilike(term),
        ))

    total = q.count()
    users = (
        q.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"users": users, "pagination": pagination(page, limit, total)}


def update_user(user_id: int, patch: dict, actor_user_id: int | None = None) -> User:
    user = get_user(user_id)

    if "email" in patch:
        patch["email"] = _normalize_email(patch["email"])
    if "role" in patch:
        require_choice("role", patch["role"], ROLES)
        if user.id == actor_user_id and patch["role"] != user.role:
            raise ValidationError("Cannot change your own role")
    if patch.get("is_active") is False and user.id == actor_user_id:
        raise ValidationError("Cannot deactivate your own account")

    _check_unique(patch.get("username"), patch.get("email"), exclude_id=user.id)

    was_active = user.is_active
    for k, v in patch.items():
        if k in USER_MUTABLE_FIELDS:
            setattr(user, k, v)
    db.session.commit()

    if was_active and not user.is_active:
        revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def set_user_active(user_id: int, active: bool, actor_user_id: int) -> User:
    if user_id == actor_user_id and not active:
        raise ValidationError("Cannot deactivate your own account")

    user = get_user(user_id)
    user.is_active = active
    db.session.commit()

    if not active:
        revoke_all_user_sessions(user.id, reason="User account deactivated")
    current_app.logger.info(
        "User %s %s by user %s", user.username, "activated" if active else "deactivated", actor_user_id,
    )
    return user


def toggle_user_status(user_id: int, actor_user_id: int) -> User:
    if user_id == actor_user_id:
        raise ValidationError("Cannot deactivate your own account")
    user = get_user(user_id)
    return set_user_active(user.id, not user.is_active, actor_user_id)


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()


def reset_password(user_id: int, new_password: str) -> User:
    """Admin reset. Open sessions of the user are revoked."""
    user = get_user(user_id)
    user.password_hash = hash_password(new_password)
    db.session.commit()
    revoke_all_user_sessions(user.id, reason="Password reset by admin")
    return user
