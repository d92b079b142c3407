"""Transactions: creation, filtered listing, summaries, updates and deletion.

Every operation is scoped to the calling identity. A transaction's ``type``
must equal the ``type`` of its category; the create path checks this in the
category lookup itself, the update path compares the supplied fields against
whichever side of the pair is left unchanged.
"""
import logging
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import delete, func, insert, select, update

from backend.category_service import find_visible_category
from backend.database import categories, transactions
from backend.errors import CategoryMismatch, MissingCategory, NotFoundError
from backend.pagination import Page, PageResult
from backend.security import Identity
from backend.summary_engine import LedgerEntry, Summary, summarize
from backend.validation import (
    Direction,
    clean_text,
    end_of_day,
    parse_amount,
    parse_date,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("amount", "date", "category", "type", "description")

TRANSACTION_COLUMNS = (
    transactions.c.id,
    transactions.c.amount,
    transactions.c.description,
    transactions.c.date,
    transactions.c.type,
    transactions.c.category_id,
    transactions.c.user_id,
    transactions.c.created_at,
    transactions.c.updated_at,
    categories.c.name.label("category_name"),
    categories.c.type.label("category_type"),
    categories.c.color.label("category_color"),
    categories.c.icon.label("category_icon"),
)


def serialize_transaction(row: Mapping[str, Any]) -> dict:
    category = None
    if row["category_name"] is not None:
        category = {
            "id": row["category_id"],
            "name": row["category_name"],
            "type": row["category_type"],
            "color": row["category_color"],
            "icon": row["category_icon"],
        }
    return {
        "id": row["id"],
        "amount": float(row["amount"]),
        "description": row["description"],
        "date": row["date"],
        "type": row["type"],
        "category": category,
        "categoryId": row["category_id"],
        "userId": row["user_id"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def _select_transactions():
    # Outer join: a category may have been deleted from under its transactions.
    return select(*TRANSACTION_COLUMNS).select_from(
        transactions.outerjoin(categories, transactions.c.category_id == categories.c.id)
    )


def _fetch_transaction(conn, transaction_id: int) -> dict:
    row = conn.execute(
        _select_transactions().where(transactions.c.id == transaction_id)
    ).mappings().first()
    return serialize_transaction(row)


def _find_owned(conn, identity: Identity, transaction_id: int):
    return conn.execute(
        select(transactions).where(
            transactions.c.id == transaction_id,
            transactions.c.user_id == identity.id,
        )
    ).mappings().first()


def _filter_conditions(
    conn,
    identity: Identity,
    start_date: Any = None,
    end_date: Any = None,
    category: Any = None,
) -> list:
    conditions = [transactions.c.user_id == identity.id]
    if start_date:
        conditions.append(
            transactions.c.date >= parse_date(start_date, "Invalid start date format.")
        )
    if end_date:
        end = end_of_day(parse_date(end_date, "Invalid end date format."))
        conditions.append(transactions.c.date <= end)
    if category:
        category_row = find_visible_category(conn, identity, category)
        if category_row is None:
            raise NotFoundError("Category not found or access denied.")
        conditions.append(transactions.c.category_id == category_row["id"])
    return conditions


def create_transaction(
    conn,
    identity: Identity,
    amount: Any,
    transaction_type: Any,
    category: Any,
    date: Any = None,
    description: Any = None,
) -> dict:
    amount = parse_amount(amount)
    direction = Direction.validate(transaction_type)
    if category is None or category == "":
        raise MissingCategory()
    transaction_date = parse_date(date) if date else datetime.now()

    category_row = find_visible_category(conn, identity, category)
    if category_row is None or category_row["type"] != direction.value:
        raise CategoryMismatch()

    transaction_id = conn.execute(
        insert(transactions)
        .values(
            amount=amount,
            description=clean_text(description),
            date=transaction_date,
            type=direction.value,
            category_id=category_row["id"],
            user_id=identity.id,
        )
        .returning(transactions.c.id)
    ).scalar_one()
    logger.info("User %s created transaction %s", identity.id, transaction_id)
    return _fetch_transaction(conn, transaction_id)


def list_transactions(
    conn,
    identity: Identity,
    start_date: Any = None,
    end_date: Any = None,
    category: Any = None,
    transaction_type: Any = None,
    page: Page = Page(),
) -> PageResult:
    conditions = _filter_conditions(conn, identity, start_date, end_date, category)
    direction = Direction.parse_optional(transaction_type)
    if direction is not None:
        conditions.append(transactions.c.type == direction.value)

    total = conn.execute(
        select(func.count()).select_from(transactions).where(*conditions)
    ).scalar_one()
    rows = conn.execute(
        _select_transactions()
        .where(*conditions)
        .order_by(transactions.c.date.desc(), transactions.c.id.desc())
        .offset(page.skip)
        .limit(page.limit)
    ).mappings().all()
    return PageResult(
        items=[serialize_transaction(row) for row in rows], total=int(total), page=page
    )


def summarize_transactions(
    conn,
    identity: Identity,
    start_date: Any = None,
    end_date: Any = None,
    category: Any = None,
) -> Summary:
    conditions = _filter_conditions(conn, identity, start_date, end_date, category)
    rows = conn.execute(
        select(transactions.c.amount, transactions.c.type).where(*conditions)
    ).mappings().all()
    return summarize(
        LedgerEntry(amount=row["amount"], type=row["type"]) for row in rows
    )


def update_transaction(
    conn, identity: Identity, transaction_id: int, fields: Mapping[str, Any]
) -> dict:
    """Applies a partial update after every supplied field has been checked.

    ``category`` and ``type`` are checked against each other when both are
    given; when only one is given it is checked against the stored value of
    the other.
    """
    current = _find_owned(conn, identity, transaction_id)
    if current is None:
        raise NotFoundError("Transaction not found or access denied.")

    updates: dict[str, Any] = {}
    if "amount" in fields:
        updates["amount"] = parse_amount(fields["amount"])
    if fields.get("date"):
        updates["date"] = parse_date(fields["date"])

    new_category = None
    if fields.get("category"):
        new_category = find_visible_category(conn, identity, fields["category"])
        if new_category is None:
            raise NotFoundError("Category not found or access denied.")
        updates["category_id"] = new_category["id"]

    new_direction = None
    if fields.get("type"):
        new_direction = Direction.validate(fields["type"])
        updates["type"] = new_direction.value

    if new_category is not None and new_direction is not None:
        if new_category["type"] != new_direction.value:
            raise CategoryMismatch(
                f"Type must match category type ({new_category['type']})."
            )
    elif new_direction is not None:
        current_category_type = conn.execute(
            select(categories.c.type).where(categories.c.id == current["category_id"])
        ).scalar_one_or_none()
        if current_category_type is not None and current_category_type != new_direction.value:
            raise CategoryMismatch(
                f"Type must match category type ({current_category_type})."
            )
    elif new_category is not None and new_category["type"] != current["type"]:
        raise CategoryMismatch(
            f"Category type ({new_category['type']}) must match transaction type."
        )

    if "description" in fields:
        updates["description"] = clean_text(fields["description"])

    if updates:
        conn.execute(
            update(transactions)
            .where(transactions.c.id == current["id"])
            .values(**updates, updated_at=datetime.now())
        )
        logger.info("User %s updated transaction %s", identity.id, current["id"])
    return _fetch_transaction(conn, current["id"])


def delete_transaction(conn, identity: Identity, transaction_id: int) -> dict:
    result = conn.execute(
        delete(transactions).where(
            transactions.c.id == transaction_id,
            transactions.c.user_id == identity.id,
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Transaction not found or access denied.")
    logger.info("User %s deleted transaction %s", identity.id, transaction_id)
    return {"id": transaction_id}
