import logging
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError

from backend.database import users
from backend.errors import (
    DuplicateEmail,
    InvalidCredentials,
    NoOp,
    NotFoundError,
    ValidationError,
)
from backend.pagination import Page, PageResult
from backend.security import Identity, hash_password, require_admin, verify_password
from backend.validation import Role, clean_text, validate_currency

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72
PROFILE_FIELDS = ("name", "avatar", "currency")

PUBLIC_COLUMNS = (
    users.c.id,
    users.c.name,
    users.c.email,
    users.c.role,
    users.c.avatar,
    users.c.currency,
    users.c.created_at,
    users.c.updated_at,
)


def serialize_user(row: Mapping[str, Any]) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "role": row["role"],
        "avatar": row["avatar"],
        "currency": row["currency"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def normalize_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def register_user(
    conn,
    name: Any,
    email: Any,
    password: Any,
    role: Role = Role.USER,
) -> dict:
    """Creates an account. Public registration always passes ``Role.USER``."""
    name = clean_text(name)
    email = normalize_email(email)
    if not name or not email or not isinstance(password, str) or not password:
        raise ValidationError("All fields are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")

    existing = conn.execute(select(users.c.id).where(users.c.email == email)).first()
    if existing:
        raise DuplicateEmail()

    try:
        row = conn.execute(
            insert(users)
            .values(
                name=name,
                email=email,
                hashed_password=hash_password(password),
                role=role.value,
            )
            .returning(*PUBLIC_COLUMNS)
        ).mappings().first()
    except IntegrityError as exc:
        raise DuplicateEmail() from exc

    logger.info("Registered user %s with role %s", row["id"], row["role"])
    return serialize_user(row)


def login_user(conn, email: Any, password: Any) -> dict:
    email = normalize_email(email)
    if not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required.")

    row = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not row or not verify_password(password, row["hashed_password"]):
        raise InvalidCredentials()
    return serialize_user(row)


def get_profile(conn, identity: Identity) -> dict:
    row = conn.execute(
        select(*PUBLIC_COLUMNS).where(users.c.id == identity.id)
    ).mappings().first()
    if not row:
        raise NotFoundError("User not found.")
    return serialize_user(row)


def update_profile(conn, identity: Identity, fields: Mapping[str, Any]) -> dict:
    """Applies name, avatar and currency changes; email and role are fixed."""
    updates: dict[str, Any] = {}
    for key in PROFILE_FIELDS:
        if key in fields:
            updates[key] = fields[key]
    if not updates:
        raise NoOp()

    if "name" in updates:
        updates["name"] = clean_text(updates["name"])
        if not updates["name"]:
            raise ValidationError("Name cannot be empty.")
    if "avatar" in updates:
        updates["avatar"] = clean_text(updates["avatar"]) or ""
    if "currency" in updates:
        updates["currency"] = validate_currency(updates["currency"])

    row = conn.execute(
        update(users)
        .where(users.c.id == identity.id)
        .values(**updates, updated_at=datetime.now())
        .returning(*PUBLIC_COLUMNS)
    ).mappings().first()
    if not row:
        raise NotFoundError("User not found.")
    return serialize_user(row)


def list_users(
    conn,
    identity: Identity,
    search: str | None = None,
    role: str | None = None,
    page: Page = Page(),
) -> PageResult:
    require_admin(identity)

    conditions = []
    if search:
        conditions.append(users.c.name.ilike(f"%{search}%"))
    if role:
        conditions.append(users.c.role == role)

    total = conn.execute(
        select(func.count()).select_from(users).where(*conditions)
    ).scalar_one()
    rows = conn.execute(
        select(*PUBLIC_COLUMNS)
        .where(*conditions)
        .order_by(users.c.created_at.desc(), users.c.id.desc())
        .offset(page.skip)
        .limit(page.limit)
    ).mappings().all()
    return PageResult(items=[serialize_user(row) for row in rows], total=int(total), page=page)


def ensure_admin(conn, name: str, email: str, password: str) -> dict:
    """Creates an admin account, or promotes the existing account with that email."""
    normalized = normalize_email(email)
    existing = conn.execute(
        select(users.c.id).where(users.c.email == normalized)
    ).first()
    if not existing:
        return register_user(conn, name, email, password, role=Role.ADMIN)

    row = conn.execute(
        update(users)
        .where(users.c.id == existing[0])
        .values(role=Role.ADMIN.value, updated_at=datetime.now())
        .returning(*PUBLIC_COLUMNS)
    ).mappings().first()
    logger.info("Promoted user %s to admin", row["id"])
    return serialize_user(row)
