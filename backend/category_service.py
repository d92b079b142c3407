import logging
from typing import Any, Mapping

from sqlalchemy import delete, func, insert, or_, select, update

from backend.database import (
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_CATEGORY_ICON,
    categories,
    transactions,
)
from backend.errors import (
    CategoryInUse,
    DuplicateCategory,
    NoOp,
    NotFoundError,
    ValidationError,
)
from backend.pagination import Page, PageResult
from backend.security import Identity
from backend.validation import Direction, clean_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "type", "color", "icon")


def visible(category: Mapping[str, Any], identity: Identity) -> bool:
    return category["user_id"] == identity.id or bool(category["is_default"])


def visible_condition(identity: Identity):
    """SQL form of ``visible``: owned by the caller or a shared default."""
    return or_(categories.c.user_id == identity.id, categories.c.is_default.is_(True))


def owned_condition(identity: Identity):
    """Categories the caller may change: owned and never a default."""
    return (categories.c.user_id == identity.id) & (categories.c.is_default.is_(False))


def serialize_category(row: Mapping[str, Any]) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "type": row["type"],
        "color": row["color"],
        "icon": row["icon"],
        "userId": row["user_id"],
        "isDefault": bool(row["is_default"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def find_visible_category(conn, identity: Identity, category_id: Any):
    """Returns the category row if the caller can see it, else None."""
    # JSON true/1.9 must not be read as category 1.
    if isinstance(category_id, bool) or (
        isinstance(category_id, float) and not category_id.is_integer()
    ):
        return None
    try:
        category_id = int(category_id)
    except (TypeError, ValueError):
        return None
    row = conn.execute(
        select(categories).where(categories.c.id == category_id)
    ).mappings().first()
    if row is None or not visible(row, identity):
        return None
    return row


def create_category(
    conn,
    identity: Identity,
    name: Any,
    category_type: Any,
    color: Any = None,
    icon: Any = None,
) -> dict:
    name = clean_text(name)
    if not name or not category_type:
        raise ValidationError("Name and type are required.")
    direction = Direction.validate(category_type)

    existing = conn.execute(
        select(categories.c.id).where(
            categories.c.name == name,
            categories.c.user_id == identity.id,
        )
    ).first()
    if existing:
        raise DuplicateCategory()

    row = conn.execute(
        insert(categories)
        .values(
            name=name,
            type=direction.value,
            color=clean_text(color) or DEFAULT_CATEGORY_COLOR,
            icon=clean_text(icon) or DEFAULT_CATEGORY_ICON,
            user_id=identity.id,
            is_default=False,
        )
        .returning(*categories.c)
    ).mappings().first()
    logger.info("User %s created category %s", identity.id, row["id"])
    return serialize_category(row)


def list_categories(
    conn,
    identity: Identity,
    search: str | None = None,
    page: Page = Page(),
) -> PageResult:
    conditions = [visible_condition(identity)]
    if search:
        conditions.append(categories.c.name.ilike(f"%{search}%"))

    total = conn.execute(
        select(func.count()).select_from(categories).where(*conditions)
    ).scalar_one()
    rows = conn.execute(
        select(categories)
        .where(*conditions)
        .order_by(categories.c.name.asc(), categories.c.id.asc())
        .offset(page.skip)
        .limit(page.limit)
    ).mappings().all()
    return PageResult(
        items=[serialize_category(row) for row in rows], total=int(total), page=page
    )


def get_category(conn, identity: Identity, category_id: int) -> dict:
    row = find_visible_category(conn, identity, category_id)
    if row is None:
        raise NotFoundError("Category not found or access denied.")
    return serialize_category(row)


def update_category(
    conn, identity: Identity, category_id: int, fields: Mapping[str, Any]
) -> dict:
    # Empty values count as not supplied.
    updates = {key: fields[key] for key in UPDATABLE_FIELDS if fields.get(key)}
    if not updates:
        raise NoOp()

    if "name" in updates:
        updates["name"] = clean_text(updates["name"])
        if not updates["name"]:
            raise ValidationError("Category name is required.")
    if "type" in updates:
        updates["type"] = Direction.validate(updates["type"]).value
    for key in ("color", "icon"):
        if key in updates:
            updates[key] = clean_text(updates[key])
            if not updates[key]:
                del updates[key]
    if not updates:
        raise NoOp()

    if "type" in updates:
        target = conn.execute(
            select(categories.c.id).where(
                categories.c.id == category_id, owned_condition(identity)
            )
        ).first()
        if not target:
            raise NotFoundError("Category not found or cannot be updated.")
        # A transaction's type must keep matching its category's type.
        conflicting = conn.execute(
            select(transactions.c.id)
            .where(
                transactions.c.category_id == category_id,
                transactions.c.type != updates["type"],
            )
            .limit(1)
        ).first()
        if conflicting:
            raise CategoryInUse()

    row = conn.execute(
        update(categories)
        .where(categories.c.id == category_id, owned_condition(identity))
        .values(**updates)
        .returning(*categories.c)
    ).mappings().first()
    if not row:
        raise NotFoundError("Category not found or cannot be updated.")
    return serialize_category(row)


def delete_category(conn, identity: Identity, category_id: int) -> None:
    # Transactions still pointing at the category are left as they are.
    result = conn.execute(
        delete(categories).where(categories.c.id == category_id, owned_condition(identity))
    )
    if result.rowcount == 0:
        raise NotFoundError("Category not found or cannot be deleted.")
    logger.info("User %s deleted category %s", identity.id, category_id)
