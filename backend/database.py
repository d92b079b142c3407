import logging
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from backend import config

logger = logging.getLogger(__name__)

metadata = MetaData()

DEFAULT_CATEGORY_COLOR = "#000000"
DEFAULT_CATEGORY_ICON = "default-icon"

DEFAULT_CATEGORIES = [
    ("Salary", "income"),
    ("Freelance", "income"),
    ("Investments", "income"),
    ("Food", "expense"),
    ("Rent", "expense"),
    ("Transport", "expense"),
    ("Utilities", "expense"),
    ("Entertainment", "expense"),
    ("Health", "expense"),
    ("Other", "expense"),
]

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("role", String(20), nullable=False, default="user"),
    Column("avatar", String(500), nullable=False, default=""),
    Column("currency", String(3), nullable=False, default=config.SYSTEM_DEFAULT_CURRENCY),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
    Column("updated_at", DateTime, nullable=False, default=datetime.now, onupdate=datetime.now),
)

# user_id is NULL only for shared default categories.
categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("type", String(20), nullable=False),
    Column("color", String(20), nullable=False, default=DEFAULT_CATEGORY_COLOR),
    Column("icon", String(100), nullable=False, default=DEFAULT_CATEGORY_ICON),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
    Column("updated_at", DateTime, nullable=False, default=datetime.now, onupdate=datetime.now),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("description", String(500)),
    Column("date", DateTime, nullable=False),
    Column("type", String(20), nullable=False),
    # No foreign key: deleting a category leaves its transactions in place.
    Column("category_id", Integer, nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
    Column("updated_at", DateTime, nullable=False, default=datetime.now, onupdate=datetime.now),
)


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


engine = create_db_engine(config.DATABASE_URL)


def get_engine() -> Engine:
    return engine


def ensure_default_categories(conn) -> None:
    existing = conn.execute(
        select(categories.c.id).where(categories.c.is_default.is_(True)).limit(1)
    ).first()
    if existing:
        return
    conn.execute(
        insert(categories),
        [
            {
                "name": name,
                "type": category_type,
                "color": DEFAULT_CATEGORY_COLOR,
                "icon": DEFAULT_CATEGORY_ICON,
                "user_id": None,
                "is_default": True,
            }
            for name, category_type in DEFAULT_CATEGORIES
        ],
    )
    logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))


def init_db(db_engine: Engine) -> None:
    metadata.create_all(db_engine)
    with db_engine.begin() as conn:
        ensure_default_categories(conn)
