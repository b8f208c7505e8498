# Overview: User accounts and password authentication (bcrypt).

"""
WHY: Offers, contracts and forecast edits record the acting user, so every
request must be attributable to an account.

- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower and digit
- Session tokens live in session_service
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ALL_ROLES, ROLE_SALESPERSON
from ..validation import EMAIL_RE
from . import session_service
from robocrm.time_utils import utcnow


BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserError(ValueError):
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def create_user(
    email: str,
    password: str,
    *,
    full_name: str | None = None,
    role: str = ROLE_SALESPERSON,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise UserError("email must be a valid email address")
    if role not in ALL_ROLES:
        raise UserError(f"role must be one of {', '.join(ALL_ROLES)}")
    if db.session.query(User.id).filter_by(email=email).first():
        raise UserError("A user with this email already exists")

    user = User(
        email=email,
        full_name=full_name,
        role=role,
        password_hash=hash_password(password, rounds=rounds),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """User on valid credentials, None otherwise. Stamps last_login_at."""
    user = (
        db.session.query(User)
        .filter(User.email == (email or "").strip().lower(), User.is_active.is_(True))
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        return None
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def set_role(user_id: int, role: str) -> User:
    """Change a user's role. Existing sessions are revoked so the user signs in again."""
    if role not in ALL_ROLES:
        raise UserError(f"role must be one of {', '.join(ALL_ROLES)}")
    user = db.session.get(User, user_id)
    if not user:
        raise UserError("User not found")
    if user.role != role:
        user.role = role
        session_service.revoke_all_user_sessions(user.id)
    db.session.commit()
    return user


def deactivate_user(user_id: int, *, acting_user_id: int | None) -> tuple[User, int]:
    """(user, revoked session count). Admins cannot deactivate themselves."""
    user = db.session.get(User, user_id)
    if not user:
        raise UserError("User not found")
    if not user.is_active:
        raise UserError("User is already deactivated")
    if user.id == acting_user_id:
        raise UserError("Cannot deactivate your own account")
    user.is_active = False
    revoked = session_service.revoke_all_user_sessions(user.id)
    db.session.commit()
    return user, revoked


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.email.asc()).all()
