from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select

from backend import config
from backend.database import users
from backend.errors import AdminRequired, InvalidToken, Unauthenticated, UserNotFound
from backend.validation import Role


@dataclass(frozen=True)
class Identity:
    """The caller resolved from a bearer token, passed into every service."""

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # bcrypt refuses inputs longer than 72 bytes; no stored hash can match one.
        return False


def create_access_token(
    user: Mapping[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=config.JWT_EXPIRE_DAYS)
    )
    claims = {
        "sub": str(user["id"]),
        "id": user["id"],
        "email": user["email"],
        "role": user["role"],
        "exp": expire,
    }
    return jwt.encode(claims, config.get_jwt_secret(), algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.get_jwt_secret(), algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise InvalidToken("Token expired.") from exc
    except JWTError as exc:
        raise InvalidToken() from exc


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated()
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise Unauthenticated("No token, authorization denied.")
    return token


def authenticate(conn, authorization: str | None) -> Identity:
    token = extract_bearer_token(authorization)
    claims = decode_access_token(token)
    try:
        user_id = int(claims.get("sub"))
    except (TypeError, ValueError) as exc:
        raise InvalidToken() from exc

    row = conn.execute(
        select(users.c.id, users.c.email, users.c.role).where(users.c.id == user_id)
    ).mappings().first()
    if not row:
        raise UserNotFound()
    return Identity(id=row["id"], email=row["email"], role=row["role"])


def require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise AdminRequired()
