# Overview: Service-layer operations for accounts; password hashing and authentication.

"""
Account service.

Passwords are hashed with bcrypt; the cost factor comes from the
BCRYPT_ROUNDS setting so tests can run with a cheap one.
"""

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..validation import ValidationError, ConflictError
from bakelink.time_utils import utcnow

MIN_PASSWORD_LENGTH = 8
USER_ROLES = ("admin", "user")


def validate_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = "user",
) -> User:
    """
    Create an account.

    Raises ValidationError for missing fields or a weak password and
    ConflictError when the email is taken.
    """
    name = str(name or "").strip()
    email = normalize_email(email)
    if not name or not email or not password:
        raise ValidationError("name, email, and password are required.")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already exists.")

    user = User(
        name=name,
        email=email,
        phone=str(phone).strip() if phone else None,
        password_hash=hash_password(str(password)),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already exists.")
    return user


def upsert_admin(*, name: str, email: str, password: str) -> tuple[User, bool]:
    """
    Create the bootstrap admin, or reset its name/password/role if present.

    Returns (user, created).
    """
    email = normalize_email(email)
    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        return create_user(name=name, email=email, password=password, role="admin"), True

    user.name = name.strip() or user.name
    user.password_hash = hash_password(password)
    user.role = "admin"
    user.is_active = True
    db.session.commit()
    return user, False


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user or not user.is_active or not user.password_hash:
        return None
    if not verify_password(str(password), user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users(page: int | None = None, limit: int | None = None) -> dict:
    from ..pagination import paginate_query

    query = db.session.query(User).order_by(User.created_at.desc(), User.id.desc())
    rows, meta = paginate_query(query, page=page, limit=limit)
    return {"data": [u.to_dict() for u in rows], "pagination": meta}
