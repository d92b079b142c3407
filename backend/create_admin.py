"""Create an admin account, or promote an existing one.

Public registration always creates plain users, so the first administrator is
made from the command line:

    python -m backend.create_admin --email admin@example.com --name Admin
"""
import argparse
import getpass
import sys

from backend.database import get_engine, init_db
from backend.errors import AppError
from backend.user_service import ensure_admin


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote an admin account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument(
        "--password",
        help="Password for a new account. Prompted for when omitted.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    password = args.password or getpass.getpass("Password: ")
    engine = get_engine()
    init_db(engine)
    try:
        with engine.begin() as conn:
            user = ensure_admin(conn, args.name, args.email, password)
    except AppError as exc:
        print(f"Failed to create admin {args.email}: {exc.message}", file=sys.stderr)
        return 1
    print(f"Admin {user['email']} ready (id {user['id']})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
